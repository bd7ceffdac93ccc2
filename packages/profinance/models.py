"""Canonical record models and enums for ``profinance``.

Every record kind is a frozen pydantic model: once normalized a record is a
value. The presentation layer edits by cloning (``model_copy(update=...)``)
and re-validating through :func:`validate_record`.

Field names are the Python (snake_case) spelling of the dashboard's canonical
fields: ``paymentMethod`` becomes ``payment_method``, ``originalAmount``
becomes ``original_amount`` and so on.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DatasetKind(StrEnum):
    """One flat collection of the dashboard."""

    EXPENSES = "expenses"
    INCOME = "income"
    DEBTS = "debts"
    CAPITAL = "capital"
    INVESTMENTS = "investments"


class SourceState(StrEnum):
    """Connection status shown next to every dataset."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    OFFLINE = "offline"
    ERROR = "error"


class RecordSource(StrEnum):
    """Where the records of a load came from."""

    NETWORK = "network"
    CACHE = "cache"
    SAMPLE = "sample"


class CapitalMovementType(StrEnum):
    INCOME = "Ingreso"
    EXPENSE = "Egreso"
    TRANSFER = "Transferencia"
    INVESTMENT = "Inversión"
    LOAN = "Préstamo"
    PAYMENT = "Pago"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: str = Field(min_length=1)
    date: dt.date
    notes: str = ""


class _TimedRecord(_Record):
    time: str = "12:00"

    @field_validator("time")
    @classmethod
    def _hh_mm(cls, v: str) -> str:
        for fmt in _TIME_FORMATS:
            try:
                return dt.datetime.strptime(v, fmt).strftime("%H:%M")
            except ValueError:
                continue
        raise ValueError(f"time must be HH:MM, got {v!r}")


class ExpenseRecord(_TimedRecord):
    product: str = Field(default="Sin descripción", min_length=1)
    category: str = "Otros"
    price: float = Field(gt=0)
    payment_method: str = "Efectivo"


class IncomeRecord(_TimedRecord):
    entity: str = Field(default="Sin entidad", min_length=1)
    amount: float = Field(gt=0)
    payment_method: str = "Efectivo"


class DebtRecord(_TimedRecord):
    entity: str = Field(default="Sin entidad", min_length=1)
    original_amount: float = Field(gt=0)
    current_balance: float = Field(ge=0)
    interest_rate: float = Field(default=0.0, ge=0)
    due_date: dt.date | None = None

    @model_validator(mode="after")
    def _balance_within_original(self) -> DebtRecord:
        if self.current_balance > self.original_amount:
            raise ValueError("current_balance cannot exceed original_amount")
        return self

    @property
    def paid_amount(self) -> float:
        return self.original_amount - self.current_balance

    @property
    def paid_ratio(self) -> float:
        return self.paid_amount / self.original_amount


class CapitalMovementRecord(_Record):
    type: CapitalMovementType = CapitalMovementType.INCOME
    description: str = Field(default="Sin descripción", min_length=1)
    category: str = "Otros"
    # Signed: positive is an inflow, negative an outflow.
    amount: float

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


class InvestmentRecord(_Record):
    type: str = "Acciones"
    description: str = Field(default="Sin descripción", min_length=1)
    category: str = "Otros"
    initial_amount: float = Field(gt=0)
    current_value: float = Field(ge=0)

    @property
    def gain(self) -> float:
        return self.current_value - self.initial_amount

    @property
    def return_pct(self) -> float:
        return self.gain / self.initial_amount * 100


type CanonicalRecord = (
    ExpenseRecord | IncomeRecord | DebtRecord | CapitalMovementRecord | InvestmentRecord
)

RECORD_TYPES: dict[DatasetKind, type[_Record]] = {
    DatasetKind.EXPENSES: ExpenseRecord,
    DatasetKind.INCOME: IncomeRecord,
    DatasetKind.DEBTS: DebtRecord,
    DatasetKind.CAPITAL: CapitalMovementRecord,
    DatasetKind.INVESTMENTS: InvestmentRecord,
}


def validate_record(kind: DatasetKind, data: dict[str, Any]) -> CanonicalRecord:
    """Validate ``data`` as a record of ``kind`` (raises pydantic ``ValidationError``)."""

    return RECORD_TYPES[kind].model_validate(data)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Aggregate and cache DTOs
# ---------------------------------------------------------------------------


class Aggregate(BaseModel):
    """All dataset kinds plus the time of the last successful sync.

    A kind set to ``None`` has not been loaded; an empty tuple means it was
    loaded and is empty. Replaced as a whole, never mutated in place.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    expenses: tuple[ExpenseRecord, ...] | None = None
    income: tuple[IncomeRecord, ...] | None = None
    debts: tuple[DebtRecord, ...] | None = None
    capital: tuple[CapitalMovementRecord, ...] | None = None
    investments: tuple[InvestmentRecord, ...] | None = None
    last_sync: dt.datetime | None = None

    def records(self, kind: DatasetKind) -> tuple[CanonicalRecord, ...] | None:
        return getattr(self, kind.value)

    def has(self, kind: DatasetKind) -> bool:
        return self.records(kind) is not None

    def with_records(
        self,
        kind: DatasetKind,
        records: Sequence[CanonicalRecord],
        *,
        last_sync: dt.datetime | None = None,
    ) -> Aggregate:
        update: dict[str, Any] = {kind.value: tuple(records)}
        if last_sync is not None:
            update["last_sync"] = last_sync
        return self.model_copy(update=update)


class CacheEntry(BaseModel):
    """On-disk shape of the cached aggregate: ``{data, timestamp, synced}``.

    ``synced`` records when each cached kind was fetched; ``timestamp`` is the
    oldest of those. Kinds missing from ``synced`` count as fetched at
    ``timestamp``.
    """

    model_config = ConfigDict(extra="forbid")

    data: Aggregate
    timestamp: dt.datetime
    synced: dict[DatasetKind, dt.datetime] = Field(default_factory=dict)

    def synced_at(self, kind: DatasetKind) -> dt.datetime:
        return self.synced.get(kind, self.timestamp)


__all__ = [
    "RECORD_TYPES",
    "Aggregate",
    "CacheEntry",
    "CanonicalRecord",
    "CapitalMovementRecord",
    "CapitalMovementType",
    "DatasetKind",
    "DebtRecord",
    "ExpenseRecord",
    "IncomeRecord",
    "InvestmentRecord",
    "RecordSource",
    "SourceState",
    "validate_record",
]
