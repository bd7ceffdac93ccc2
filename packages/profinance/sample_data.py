"""Synthetic records shown when no real data is reachable.

Records are random within fixed ranges but driven by a seeded
:class:`random.Random`, so the same ``seed`` and ``today`` always produce the
same dataset. Every record is a valid canonical record of its kind.
"""

from __future__ import annotations

import datetime as dt
import random

from .config import EXPENSE_CATEGORIES
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

DEFAULT_SEED = 2024

SAMPLE_SIZES: dict[DatasetKind, int] = {
    DatasetKind.EXPENSES: 50,
    DatasetKind.INCOME: 20,
    DatasetKind.DEBTS: 15,
    DatasetKind.CAPITAL: 30,
    DatasetKind.INVESTMENTS: 20,
}

_SAMPLE_NOTE = "Nota de muestra"

_PAYMENT_METHODS = ("Efectivo", "Débito", "Crédito", "Transferencia", "Pago Móvil")
_PRODUCTS = (
    "Supermercado",
    "Restaurante",
    "Gasolina",
    "Uber",
    "Netflix",
    "Medicamentos",
    "Libros",
    "Alquiler",
    "Luz",
    "Agua",
    "Camisa",
    "Laptop",
    "Café",
    "Pan",
)
_INCOME_ENTITIES = (
    "Salario Mensual",
    "Pago por Proyecto",
    "Dividendos",
    "Venta de Productos",
    "Alquiler Cobrado",
    "Comisión por Venta",
)
_DEBT_ENTITIES = (
    "Visa Banco Central",
    "Mastercard Itaú",
    "Préstamo Personal Banco Familiar",
    "Hipoteca Casa Principal",
    "Préstamo Auto Toyota",
    "Préstamo Universidad",
    "Línea de Crédito Comercial",
    "Tarjeta de Crédito Shopping",
    "Préstamo Renovación",
)
_CAPITAL_CATEGORIES = (
    "Salario",
    "Freelance",
    "Inversiones",
    "Ventas",
    "Gastos Personales",
    "Gastos de Negocio",
    "Transferencias",
    "Otros",
)
_CAPITAL_DESCRIPTIONS = (
    "Salario Mensual",
    "Pago por Proyecto",
    "Dividendos",
    "Venta de Productos",
    "Gastos de Alimentación",
    "Pago de Servicios",
    "Transferencia Bancaria",
    "Inversión en Acciones",
    "Préstamo Personal",
    "Pago de Deuda",
    "Comisión por Venta",
)
_INVESTMENT_TYPES = (
    "Acciones",
    "Bonos",
    "Fondos Mutuos",
    "Criptomonedas",
    "Bienes Raíces",
    "Oro",
    "Plata",
    "Forex",
)
_INVESTMENT_CATEGORIES = (
    "Renta Variable",
    "Renta Fija",
    "Commodities",
    "Bienes Raíces",
    "Criptomonedas",
    "Metales Preciosos",
    "Otros",
)
_INVESTMENT_DESCRIPTIONS = (
    "Apple Inc.",
    "Microsoft Corp.",
    "Tesla Inc.",
    "Amazon.com",
    "Google LLC",
    "Bitcoin",
    "Ethereum",
    "Fondo S&P 500",
    "Bono del Tesoro",
    "Oro Físico",
    "Apartamento Centro",
    "Terreno Residencial",
    "Oficina Comercial",
)


def _id(rng: random.Random, kind: DatasetKind) -> str:
    return f"sample-{kind.value}-{rng.getrandbits(48):012x}"


def _days_ago(rng: random.Random, today: dt.date, span: int) -> dt.date:
    return today - dt.timedelta(days=rng.randrange(span))


def _note(rng: random.Random) -> str:
    return _SAMPLE_NOTE if rng.random() > 0.7 else ""


def _time(rng: random.Random) -> str:
    return f"{rng.randrange(24):02d}:{rng.randrange(60):02d}"


def _expenses(rng: random.Random, today: dt.date, n: int) -> list[ExpenseRecord]:
    out = [
        ExpenseRecord(
            id=_id(rng, DatasetKind.EXPENSES),
            date=_days_ago(rng, today, 365),
            time=_time(rng),
            product=rng.choice(_PRODUCTS),
            category=rng.choice(EXPENSE_CATEGORIES),
            price=float(rng.randrange(10_000, 510_000)),
            payment_method=rng.choice(_PAYMENT_METHODS),
            notes=_note(rng),
        )
        for _ in range(n)
    ]
    return sorted(out, key=lambda r: r.date, reverse=True)


def _income(rng: random.Random, today: dt.date, n: int) -> list[IncomeRecord]:
    out = [
        IncomeRecord(
            id=_id(rng, DatasetKind.INCOME),
            date=_days_ago(rng, today, 365),
            time=_time(rng),
            entity=rng.choice(_INCOME_ENTITIES),
            amount=float(rng.randrange(500_000, 10_000_000)),
            payment_method=rng.choice(_PAYMENT_METHODS),
            notes=_note(rng),
        )
        for _ in range(n)
    ]
    return sorted(out, key=lambda r: r.date, reverse=True)


def _debts(rng: random.Random, today: dt.date, n: int) -> list[DebtRecord]:
    out: list[DebtRecord] = []
    for _ in range(n):
        original = rng.randrange(1_000_000, 51_000_000)
        paid = rng.random() * 0.8
        out.append(
            DebtRecord(
                id=_id(rng, DatasetKind.DEBTS),
                date=_days_ago(rng, today, 1095),
                time=_time(rng),
                entity=rng.choice(_DEBT_ENTITIES),
                original_amount=float(original),
                current_balance=float(int(original * (1 - paid))),
                interest_rate=round(rng.uniform(5, 35), 2),
                due_date=today + dt.timedelta(days=rng.randrange(1825)),
                notes=_note(rng),
            )
        )
    # Soonest due first.
    return sorted(out, key=lambda r: r.due_date or today)


def _capital(rng: random.Random, today: dt.date, n: int) -> list[CapitalMovementRecord]:
    out: list[CapitalMovementRecord] = []
    for _ in range(n):
        movement_type = rng.choice(list(CapitalMovementType))
        if movement_type is CapitalMovementType.INCOME:
            amount = rng.randrange(100_000, 10_100_000)
        else:
            amount = -rng.randrange(50_000, 5_050_000)
        out.append(
            CapitalMovementRecord(
                id=_id(rng, DatasetKind.CAPITAL),
                date=_days_ago(rng, today, 365),
                type=movement_type,
                description=rng.choice(_CAPITAL_DESCRIPTIONS),
                category=rng.choice(_CAPITAL_CATEGORIES),
                amount=float(amount),
                notes=_note(rng),
            )
        )
    return sorted(out, key=lambda r: r.date, reverse=True)


def _investments(rng: random.Random, today: dt.date, n: int) -> list[InvestmentRecord]:
    out: list[InvestmentRecord] = []
    for _ in range(n):
        initial = rng.randrange(1_000_000, 51_000_000)
        performance = (rng.random() - 0.3) * 2
        # Never below 10% of what was put in.
        current = max(initial * (1 + performance), initial * 0.1)
        out.append(
            InvestmentRecord(
                id=_id(rng, DatasetKind.INVESTMENTS),
                date=_days_ago(rng, today, 1095),
                type=rng.choice(_INVESTMENT_TYPES),
                description=rng.choice(_INVESTMENT_DESCRIPTIONS),
                category=rng.choice(_INVESTMENT_CATEGORIES),
                initial_amount=float(initial),
                current_value=float(int(current)),
                notes=_note(rng),
            )
        )
    return sorted(out, key=lambda r: r.date, reverse=True)


_GENERATORS = {
    DatasetKind.EXPENSES: _expenses,
    DatasetKind.INCOME: _income,
    DatasetKind.DEBTS: _debts,
    DatasetKind.CAPITAL: _capital,
    DatasetKind.INVESTMENTS: _investments,
}


def generate_sample(
    kind: DatasetKind,
    *,
    seed: int = DEFAULT_SEED,
    today: dt.date | None = None,
    size: int | None = None,
) -> list[CanonicalRecord]:
    """Return synthetic records for ``kind``.

    The generator is seeded per kind (``seed`` combined with the kind name),
    so each kind's sample is stable regardless of which other kinds were
    generated before it.
    """

    rng = random.Random(f"{seed}:{kind.value}")
    n = SAMPLE_SIZES[kind] if size is None else size
    return list(_GENERATORS[kind](rng, today or dt.date.today(), n))


__all__ = ["DEFAULT_SEED", "SAMPLE_SIZES", "generate_sample"]
