"""Raw sheet rows → canonical records, one policy per dataset kind.

Every policy follows the same steps:

- resolve each canonical field through the kind's alias table
  (:mod:`profinance.aliases`);
- coerce numbers with :func:`~profinance.formatting.parse_currency`
  (unparseable → ``0``), dates with
  :func:`~profinance.formatting.parse_date` (missing → today) and times to
  ``HH:MM``;
- fill blank text with the kind's placeholder (``"Sin descripción"``,
  ``"Otros"``, ``"Efectivo"`` ...);
- drop rows that fail the kind's rule: expenses need ``price > 0``, income
  ``amount > 0``, debts ``original_amount > 0``, capital ``amount != 0`` and
  investments ``initial_amount > 0``.

Normalization is total. Row content never raises; a row that cannot form a
valid record is dropped and counted in a DEBUG log line.

Debt balances: a missing balance means nothing was paid yet (balance equals
the original amount); negative balances clamp to ``0`` and a balance above the
original amount clamps down to it, logged at WARNING because it usually means
the sheet has the two columns swapped.
"""

from __future__ import annotations

import datetime as dt
import unicodedata
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .aliases import (
    CAPITAL_ALIASES,
    DEBT_ALIASES,
    EXPENSE_ALIASES,
    INCOME_ALIASES,
    INVESTMENT_ALIASES,
    resolve,
)
from .formatting import parse_currency, parse_date, parse_time
from .logging_setup import get_logger
from .models import (
    CanonicalRecord,
    CapitalMovementRecord,
    CapitalMovementType,
    DatasetKind,
    DebtRecord,
    ExpenseRecord,
    IncomeRecord,
    InvestmentRecord,
)

_logger = get_logger("profinance.normalizers")

type RawRow = Mapping[str, Any]


def new_record_id() -> str:
    """Opaque unique id for records that arrive without one."""

    return uuid.uuid4().hex[:16]


@dataclass(frozen=True, slots=True)
class _Context:
    today: dt.date
    id_factory: Callable[[], str] = field(default=new_record_id)


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    s = str(value).strip()
    return s if s else default


def _id(fields: Mapping[str, Any], ctx: _Context) -> str:
    return _text(fields.get("id"), "") or ctx.id_factory()


def _date(value: Any, ctx: _Context) -> dt.date:
    return parse_date(value) or ctx.today


def _time(value: Any, default: str) -> str:
    return parse_time(value) or default


def _fold(s: str) -> str:
    # Lowercase and strip accents: "Inversión" -> "inversion".
    decomposed = unicodedata.normalize("NFKD", s.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


_CAPITAL_TYPES: dict[str, CapitalMovementType] = {
    "ingreso": CapitalMovementType.INCOME,
    "income": CapitalMovementType.INCOME,
    "egreso": CapitalMovementType.EXPENSE,
    "gasto": CapitalMovementType.EXPENSE,
    "expense": CapitalMovementType.EXPENSE,
    "transferencia": CapitalMovementType.TRANSFER,
    "transfer": CapitalMovementType.TRANSFER,
    "inversion": CapitalMovementType.INVESTMENT,
    "investment": CapitalMovementType.INVESTMENT,
    "prestamo": CapitalMovementType.LOAN,
    "loan": CapitalMovementType.LOAN,
    "pago": CapitalMovementType.PAYMENT,
    "payment": CapitalMovementType.PAYMENT,
}


def capital_type(value: Any, amount: float) -> CapitalMovementType:
    """Map a Spanish or English movement label to :class:`CapitalMovementType`.

    Unknown or missing labels fall back on the sign of ``amount``.
    """

    if value is not None:
        found = _CAPITAL_TYPES.get(_fold(str(value)))
        if found is not None:
            return found
    return CapitalMovementType.INCOME if amount > 0 else CapitalMovementType.EXPENSE


# ---------------------------------------------------------------------------
# Per-kind policies
# ---------------------------------------------------------------------------


def _normalize_expenses(rows: Iterable[RawRow], ctx: _Context) -> Iterator[ExpenseRecord]:
    for r in rows:
        f = resolve(r, EXPENSE_ALIASES)
        price = parse_currency(f["price"])
        if price <= 0:
            continue
        yield ExpenseRecord(
            id=_id(f, ctx),
            date=_date(f["date"], ctx),
            time=_time(f["time"], "12:00"),
            product=_text(f["product"], "Sin descripción"),
            category=_text(f["category"], "Otros"),
            price=price,
            payment_method=_text(f["payment_method"], "Efectivo"),
            notes=_text(f["notes"], ""),
        )


def _normalize_income(rows: Iterable[RawRow], ctx: _Context) -> Iterator[IncomeRecord]:
    for r in rows:
        f = resolve(r, INCOME_ALIASES)
        amount = parse_currency(f["amount"])
        if amount <= 0:
            continue
        yield IncomeRecord(
            id=_id(f, ctx),
            date=_date(f["date"], ctx),
            entity=_text(f["entity"], "Sin entidad"),
            amount=amount,
            payment_method=_text(f["payment_method"], "Efectivo"),
            time=_time(f["time"], "00:00"),
            notes=_text(f["notes"], ""),
        )


def _debt_balance(raw: Any, original: float, *, entity: str) -> float:
    if raw is None:
        return original
    balance = parse_currency(raw)
    if balance < 0:
        return 0.0
    if balance > original:
        _logger.warning(
            "normalize:debts balance above original amount, clamping "
            "entity=%s balance=%s original=%s",
            entity,
            balance,
            original,
        )
        return original
    return balance


def _normalize_debts(rows: Iterable[RawRow], ctx: _Context) -> Iterator[DebtRecord]:
    for r in rows:
        f = resolve(r, DEBT_ALIASES)
        original = parse_currency(f["original_amount"])
        if original <= 0:
            continue
        entity = _text(f["entity"], "Sin entidad")
        yield DebtRecord(
            id=_id(f, ctx),
            date=_date(f["date"], ctx),
            entity=entity,
            original_amount=original,
            current_balance=_debt_balance(f["current_balance"], original, entity=entity),
            interest_rate=max(parse_currency(f["interest_rate"]), 0.0),
            due_date=parse_date(f["due_date"]),
            time=_time(f["time"], "00:00"),
            notes=_text(f["notes"], ""),
        )


def _normalize_capital(
    rows: Iterable[RawRow], ctx: _Context
) -> Iterator[CapitalMovementRecord]:
    for r in rows:
        f = resolve(r, CAPITAL_ALIASES)
        amount = parse_currency(f["amount"])
        if amount == 0:
            continue
        yield CapitalMovementRecord(
            id=_id(f, ctx),
            date=_date(f["date"], ctx),
            type=capital_type(f["type"], amount),
            description=_text(f["description"], "Sin descripción"),
            category=_text(f["category"], "Otros"),
            amount=amount,
            notes=_text(f["notes"], ""),
        )


def _investment_value(fields: Mapping[str, Any], initial: float) -> float:
    if fields["current_value"] is not None:
        return max(parse_currency(fields["current_value"]), 0.0)
    if fields["performance"] is not None:
        # "Rendimiento" is a percentage return on the initial amount.
        return max(initial * (1 + parse_currency(fields["performance"]) / 100), 0.0)
    return initial


def _normalize_investments(
    rows: Iterable[RawRow], ctx: _Context
) -> Iterator[InvestmentRecord]:
    for r in rows:
        f = resolve(r, INVESTMENT_ALIASES)
        initial = parse_currency(f["initial_amount"])
        if initial <= 0:
            continue
        yield InvestmentRecord(
            id=_id(f, ctx),
            date=_date(f["date"], ctx),
            type=_text(f["type"], "Acciones"),
            description=_text(f["description"], "Sin descripción"),
            category=_text(f["category"], "Otros"),
            initial_amount=initial,
            current_value=_investment_value(f, initial),
            notes=_text(f["notes"], ""),
        )


_POLICIES: dict[DatasetKind, Callable[[Iterable[RawRow], _Context], Iterator[Any]]] = {
    DatasetKind.EXPENSES: _normalize_expenses,
    DatasetKind.INCOME: _normalize_income,
    DatasetKind.DEBTS: _normalize_debts,
    DatasetKind.CAPITAL: _normalize_capital,
    DatasetKind.INVESTMENTS: _normalize_investments,
}


def _guarded(
    kind: DatasetKind, rows: Iterable[RawRow], ctx: _Context
) -> Iterator[CanonicalRecord]:
    """Run the policy one row at a time so a single bad row is skipped, not fatal."""

    policy = _POLICIES[kind]
    for row in rows:
        try:
            yield from policy((row,), ctx)
        except ValidationError as e:
            _logger.debug(
                "normalize:%s row rejected errors=%d row=%r", kind.value, e.error_count(), row
            )


class RecordNormalizer:
    """Normalize raw rows into canonical records.

    Usage
    -----
    records = RecordNormalizer.normalize(DatasetKind.EXPENSES, rows)
    """

    @staticmethod
    def normalize(
        kind: DatasetKind | str,
        rows: Iterable[RawRow],
        *,
        today: dt.date | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> list[CanonicalRecord]:
        k = DatasetKind(str(kind).strip().lower())
        ctx = _Context(today=today or dt.date.today(), id_factory=id_factory or new_record_id)
        materialized = list(rows)
        out = list(_guarded(k, materialized, ctx))
        dropped = len(materialized) - len(out)
        if dropped:
            _logger.debug(
                "normalize:%s kept=%d dropped=%d", k.value, len(out), dropped
            )
        return out


__all__ = ["RecordNormalizer", "capital_type", "new_record_id"]
