"""CSV export of a dataset view.

The output matches what the dashboard downloads: a fixed Spanish header row,
every cell wrapped in double quotes, ``,`` between cells, ``\\n`` between
rows and no trailing line terminator. Numbers drop a trailing ``.0`` and dates
are ``YYYY-MM-DD``. Some kinds carry derived columns (``Pagado``,
``Progreso %``, ``Retorno``, ``ROI %``, ``Tipo de Movimiento``); importers
ignore them, so an export can be parsed and normalized back.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from .formatting import format_plain
from .models import (
    CanonicalRecord,
    CapitalMovementRecord,
    DatasetKind,
    DebtRecord,
    ExpenseRecord,
    IncomeRecord,
    InvestmentRecord,
)

EXPORT_HEADERS: Mapping[DatasetKind, tuple[str, ...]] = {
    DatasetKind.EXPENSES: (
        "Fecha",
        "Hora",
        "Producto",
        "Categoría",
        "Precio",
        "Forma de Pago",
        "Notas",
    ),
    DatasetKind.INCOME: ("Fecha", "Hora", "Entidad", "Monto", "Forma de Pago", "Notas"),
    DatasetKind.DEBTS: (
        "Fecha",
        "Hora",
        "Entidad",
        "Monto",
        "Saldo Actual",
        "Pagado",
        "Interés",
        "Vencimiento",
        "Progreso %",
        "Notas",
    ),
    DatasetKind.CAPITAL: (
        "Fecha",
        "Tipo",
        "Descripción",
        "Categoría",
        "Monto",
        "Tipo de Movimiento",
        "Notas",
    ),
    DatasetKind.INVESTMENTS: (
        "Fecha",
        "Tipo",
        "Descripción",
        "Categoría",
        "Monto Inicial",
        "Valor Actual",
        "Retorno",
        "ROI %",
        "Notas",
    ),
}

EXPORT_FILE_PREFIXES: Mapping[DatasetKind, str] = {
    DatasetKind.EXPENSES: "gastos",
    DatasetKind.INCOME: "ingresos",
    DatasetKind.DEBTS: "deudas",
    DatasetKind.CAPITAL: "capital",
    DatasetKind.INVESTMENTS: "inversiones",
}


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int | float):
        return format_plain(value)
    return str(value)


def _expense_row(r: ExpenseRecord) -> Sequence[Any]:
    return (r.date, r.time, r.product, r.category, r.price, r.payment_method, r.notes)


def _income_row(r: IncomeRecord) -> Sequence[Any]:
    return (r.date, r.time, r.entity, r.amount, r.payment_method, r.notes)


def _debt_row(r: DebtRecord) -> Sequence[Any]:
    return (
        r.date,
        r.time,
        r.entity,
        r.original_amount,
        r.current_balance,
        r.paid_amount,
        r.interest_rate,
        r.due_date,
        f"{r.paid_ratio * 100:.2f}",
        r.notes,
    )


def _capital_row(r: CapitalMovementRecord) -> Sequence[Any]:
    direction = "Ingreso" if r.amount >= 0 else "Egreso"
    return (r.date, r.type.value, r.description, r.category, r.amount, direction, r.notes)


def _investment_row(r: InvestmentRecord) -> Sequence[Any]:
    return (
        r.date,
        r.type,
        r.description,
        r.category,
        r.initial_amount,
        r.current_value,
        r.gain,
        f"{r.return_pct:.2f}",
        r.notes,
    )


_ROWS: Mapping[DatasetKind, Callable[[Any], Sequence[Any]]] = {
    DatasetKind.EXPENSES: _expense_row,
    DatasetKind.INCOME: _income_row,
    DatasetKind.DEBTS: _debt_row,
    DatasetKind.CAPITAL: _capital_row,
    DatasetKind.INVESTMENTS: _investment_row,
}


def _line(cells: Iterable[Any]) -> str:
    # Embedded quotes are doubled so the RFC 4180 reader keeps the cell intact.
    return ",".join('"' + _cell(c).replace('"', '""') + '"' for c in cells)


def to_csv(kind: DatasetKind | str, records: Iterable[CanonicalRecord]) -> str:
    """Serialize ``records`` of ``kind`` as CSV text (header row included)."""

    k = DatasetKind(kind)
    row_of = _ROWS[k]
    lines = [_line(EXPORT_HEADERS[k])]
    lines.extend(_line(row_of(r)) for r in records)
    return "\n".join(lines)


def export_filename(kind: DatasetKind | str, today: dt.date | None = None) -> str:
    """Download name for an export, e.g. ``gastos_2024-12-19.csv``."""

    k = DatasetKind(kind)
    day = today or dt.date.today()
    return f"{EXPORT_FILE_PREFIXES[k]}_{day.isoformat()}.csv"


__all__ = ["EXPORT_FILE_PREFIXES", "EXPORT_HEADERS", "export_filename", "to_csv"]
