"""Currency, number and date helpers (es-PY conventions).

Parsing is tolerant and total: malformed input degrades to ``0.0`` or
``None`` instead of raising, because spreadsheet cells are hand-typed.
Formatting mirrors what the dashboard shows (Guaraníes with no decimals,
``.`` as thousands separator, ``DD/MM/YYYY`` dates, Spanish relative dates).
"""

from __future__ import annotations

import datetime as dt
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

# Currency symbols and whitespace (incl. NBSP) removed before numeric parsing.
_STRIP_RE = re.compile(r"[₲$€\s ]|\bGs\b\.?", re.IGNORECASE)

_CURRENCIES: dict[str, tuple[str, str, str, bool]] = {
    # code: (symbol, thousands sep, decimal sep, symbol after amount)
    "PYG": ("₲", ".", ",", False),
    "USD": ("$", ",", ".", False),
    "EUR": ("€", ".", ",", True),
}

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y")
_TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p")


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def _strip_sign(s: str) -> tuple[str, bool]:
    negative = False
    # Strip leading sign and surrounding parentheses in any order until stable.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            return s, negative


def _resolve_separators(s: str) -> str:
    has_comma = "," in s
    has_dot = "." in s
    if has_comma and has_dot:
        # Whichever separator comes last is the decimal mark.
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if has_comma:
        if s.count(",") == 1:
            return s.replace(",", ".")
        return s.replace(",", "")
    if has_dot:
        head, _, tail = s.rpartition(".")
        if s.count(".") == 1 and 0 < len(tail) <= 2 and head:
            return s
        return s.replace(".", "")
    return s


def parse_currency(value: Any) -> float:
    """Convert a currency cell to ``float``; unparseable input yields ``0.0``.

    ``.`` is read as a thousands separator and ``,`` as the decimal mark, so
    ``"₲1.500,50"`` parses to ``1500.5`` and ``"1.500.000"`` to ``1500000``.
    A single ``.`` followed by one or two digits (``"15.5"``, ``"1500.50"``) is
    kept as a decimal point, which is how rates and dot-decimal exports arrive.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        f = float(value)
        return f if math.isfinite(f) else 0.0

    s = _STRIP_RE.sub("", str(value))
    if not s:
        return 0.0
    s, negative = _strip_sign(s)
    s = _resolve_separators(s)
    try:
        d = Decimal(s)
    except InvalidOperation:
        return 0.0
    f = float(d)
    # Finite decimals can still overflow a float ("1e400").
    if not math.isfinite(f):
        return 0.0
    return -f if negative else f


def _group(digits: str, sep: str) -> str:
    parts: list[str] = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return sep.join(parts)


def _is_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def format_currency(amount: Any, currency: str = "PYG") -> str:
    """Format ``amount`` with no decimals, e.g. ``"₲ 1.500"`` or ``"$1,500"``.

    Missing or non-numeric amounts render as ``"₲0"``.
    """

    if not _is_number(amount):
        return "₲0"
    symbol, thousands, _decimal, suffix = _CURRENCIES.get(currency, _CURRENCIES["PYG"])
    q = Decimal(str(float(amount))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if q < 0 else ""
    body = _group(str(abs(int(q))), thousands)
    if suffix:
        return f"{sign}{body} {symbol}"
    if symbol == "₲":
        return f"{sign}{symbol} {body}"
    return f"{sign}{symbol}{body}"


def format_number(number: Any) -> str:
    """Group thousands with ``.`` and keep up to three decimals after ``,``."""

    if not _is_number(number):
        return "0"
    q = Decimal(str(float(number))).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    sign = "-" if q < 0 else ""
    int_part, _, frac = f"{abs(q):f}".partition(".")
    frac = frac.rstrip("0")
    body = _group(int_part, ".")
    return f"{sign}{body},{frac}" if frac else f"{sign}{body}"


def format_plain(value: float) -> str:
    """Render a number for a CSV cell: ``1500`` not ``1500.0``, at most two decimals.

    Two decimals keep the cell readable by :func:`parse_currency`, which takes
    a single ``.`` followed by one or two digits as a decimal point.
    """

    f = float(value)
    if f.is_integer():
        return str(int(f))
    return f"{f:.2f}".rstrip("0").rstrip(".")


def percentage_change(old: float, new: float) -> float:
    if old == 0:
        return 100.0 if new > 0 else 0.0
    return (new - old) / old * 100


# ---------------------------------------------------------------------------
# Dates and times
# ---------------------------------------------------------------------------


def parse_date(value: Any) -> dt.date | None:
    """Parse ``YYYY-MM-DD``, ``DD/MM/YYYY`` and ISO datetimes; ``None`` otherwise."""

    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    s = str(value).strip()
    if not s:
        return None
    # Drop a time component: "2024-12-19T10:00:00Z" or "2024-12-19 10:00".
    first = s.split()[0].split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(first, fmt).date()
        except ValueError:
            continue
    return None


def parse_time(value: Any) -> str | None:
    """Return ``HH:MM`` for ``H:MM``, ``HH:MM:SS`` or ``h:MM AM`` input."""

    if value is None:
        return None
    s = str(value).strip().upper()
    if not s:
        return None
    for fmt in _TIME_FORMATS:
        try:
            return dt.datetime.strptime(s, fmt).strftime("%H:%M")
        except ValueError:
            continue
    return None


def format_date(value: Any, fmt: str = "DD/MM/YYYY") -> str:
    d = parse_date(value)
    if d is None:
        return ""
    day, month, year = f"{d.day:02d}", f"{d.month:02d}", f"{d.year:04d}"
    if fmt == "YYYY-MM-DD":
        return f"{year}-{month}-{day}"
    if fmt == "MM/DD/YYYY":
        return f"{month}/{day}/{year}"
    return f"{day}/{month}/{year}"


def format_datetime(value: dt.datetime | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = dt.datetime.fromisoformat(value.strip())
        except ValueError:
            return ""
    return f"{format_date(value)} {value.hour:02d}:{value.minute:02d}"


def relative_date(value: Any, *, today: dt.date | None = None) -> str:
    """Spanish relative date: ``"Hoy"``, ``"Ayer"``, ``"Hace 3 días"`` ..."""

    d = parse_date(value)
    if d is None:
        return ""
    ref = today or dt.date.today()
    days = abs((ref - d).days)
    if days == 0:
        return "Hoy"
    if days == 1:
        return "Ayer"
    if days < 7:
        return f"Hace {days} días"
    if days < 30:
        return f"Hace {days // 7} semanas"
    if days < 365:
        return f"Hace {days // 30} meses"
    return f"Hace {days // 365} años"


__all__ = [
    "format_currency",
    "format_date",
    "format_datetime",
    "format_number",
    "format_plain",
    "parse_currency",
    "parse_date",
    "parse_time",
    "percentage_change",
    "relative_date",
]
