"""Declarative field-alias tables, one per dataset kind.

Each table maps a canonical field name to the ordered source keys that may
carry it. Resolution takes the first key that is present with a non-blank
value (:func:`first_present`). Within a table the order is always:

1. the dashboard's own camelCase name (``paymentMethod``), so rows that were
   exported by the app round-trip unchanged;
2. Spanish field names and the header spellings found in the sheets
   (``formaPago``, ``forma de pago``, ``Forma de Pago``);
3. the single-letter spreadsheet column (``A``, ``B``, ...) as last resort.

A human name therefore always beats a lettered column when both are present
and disagree. The lettered positions are those of the published sheets and
must not be reordered.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

type AliasTable = Mapping[str, tuple[str, ...]]

# Lettered column positions of the published sheets.
EXPENSES_COLUMNS: Mapping[str, str] = {
    "producto": "A",
    "fecha": "B",
    "precio": "C",
    "formaPago": "D",
    "hora": "E",
    "categoria": "F",
}

DEBTS_COLUMNS: Mapping[str, str] = {
    "fecha": "A",
    "entidad": "B",
    "monto": "C",
    "interes": "D",
    "vencimiento": "E",
    "hora": "F",
}

INCOME_COLUMNS: Mapping[str, str] = {
    "fecha": "A",
    "entidad": "B",
    "monto": "C",
    "formaPago": "D",
    "hora": "E",
}

_NOTES = ("notes", "notas", "Notas", "Nota")
_PAYMENT = ("paymentMethod", "formaPago", "forma de pago", "Forma de Pago", "Forma de pago")
_CATEGORY = ("category", "categoria", "categoría", "Categoria", "Categoría")
_DESCRIPTION = ("description", "descripcion", "descripción", "Descripcion", "Descripción")

EXPENSE_ALIASES: AliasTable = {
    "id": ("id",),
    "date": ("date", "fecha", "Fecha", EXPENSES_COLUMNS["fecha"]),
    "time": ("time", "hora", "Hora", EXPENSES_COLUMNS["hora"]),
    "product": ("product", "producto", "Producto", EXPENSES_COLUMNS["producto"]),
    "category": (*_CATEGORY, EXPENSES_COLUMNS["categoria"]),
    "price": ("price", "precio", "Precio", "Precio-Gs", EXPENSES_COLUMNS["precio"]),
    "payment_method": (*_PAYMENT, EXPENSES_COLUMNS["formaPago"]),
    "notes": _NOTES,
}

INCOME_ALIASES: AliasTable = {
    "id": ("id",),
    "date": ("date", "fecha", "Fecha", INCOME_COLUMNS["fecha"]),
    "entity": ("entity", "entidad", "Entidad", INCOME_COLUMNS["entidad"]),
    "amount": ("amount", "monto", "Monto", "Monto-Gs", INCOME_COLUMNS["monto"]),
    "payment_method": (*_PAYMENT, INCOME_COLUMNS["formaPago"]),
    "time": ("time", "hora", "Hora", INCOME_COLUMNS["hora"]),
    "notes": _NOTES,
}

DEBT_ALIASES: AliasTable = {
    "id": ("id",),
    "date": ("date", "fecha", "Fecha", DEBTS_COLUMNS["fecha"]),
    "entity": ("entity", "entidad", "Entidad", DEBTS_COLUMNS["entidad"]),
    "original_amount": (
        "originalAmount",
        "amount",
        "monto",
        "Monto",
        "Monto Original",
        DEBTS_COLUMNS["monto"],
    ),
    # The published sheet has no balance column; column C (the original
    # amount) stands in, i.e. nothing paid yet.
    "current_balance": ("currentBalance", "saldoActual", "Saldo Actual", DEBTS_COLUMNS["monto"]),
    "interest_rate": (
        "interestRate",
        "interest",
        "tasaInteres",
        "interes",
        "interés",
        "Interes",
        "Interés",
        DEBTS_COLUMNS["interes"],
    ),
    "due_date": (
        "dueDate",
        "fechaVencimiento",
        "vencimiento",
        "Vencimiento",
        DEBTS_COLUMNS["vencimiento"],
    ),
    "time": ("time", "hora", "Hora", DEBTS_COLUMNS["hora"]),
    "notes": _NOTES,
}

CAPITAL_ALIASES: AliasTable = {
    "id": ("id",),
    "date": ("date", "fecha", "Fecha"),
    "type": ("type", "tipo", "Tipo"),
    "description": _DESCRIPTION,
    "category": _CATEGORY,
    "amount": ("amount", "monto", "Monto"),
    "notes": _NOTES,
}

INVESTMENT_ALIASES: AliasTable = {
    "id": ("id",),
    "date": ("date", "fecha", "Fecha"),
    "type": ("type", "tipo", "Tipo"),
    "description": _DESCRIPTION,
    "category": _CATEGORY,
    "initial_amount": ("initialAmount", "montoInicial", "Monto Inicial", "monto", "Monto"),
    "current_value": ("currentValue", "valorActual", "Valor Actual"),
    "performance": ("rendimiento", "Rendimiento"),
    "notes": _NOTES,
}

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def first_present(row: Mapping[str, Any], keys: Sequence[str]) -> Any | None:
    """Return the value of the first key in ``keys`` that ``row`` carries.

    Missing keys, ``None`` and blank strings are skipped, so an empty ``price``
    cell falls through to the lettered column. Returns ``None`` when nothing
    matches.
    """

    for key in keys:
        if key not in row:
            continue
        value = row[key]
        if _is_blank(value):
            continue
        return value.strip() if isinstance(value, str) else value
    return None


def resolve(row: Mapping[str, Any], table: AliasTable) -> dict[str, Any]:
    """Resolve every canonical field of ``table`` against ``row``."""

    return {field: first_present(row, keys) for field, keys in table.items()}


__all__ = [
    "CAPITAL_ALIASES",
    "DEBTS_COLUMNS",
    "DEBT_ALIASES",
    "EXPENSES_COLUMNS",
    "EXPENSE_ALIASES",
    "INCOME_ALIASES",
    "INCOME_COLUMNS",
    "INVESTMENT_ALIASES",
    "AliasTable",
    "first_present",
    "resolve",
]
