"""In-memory application state: one editable view per dataset kind.

A :class:`DatasetView` holds the records of one kind plus the filtered subset
the dashboard shows. Edits (add, update, delete) only change this in-memory
list; nothing is written back to the sheet or the cache. Records are frozen
models, so an update builds a new record and swaps it in by id.

Search and category filter combine: the visible subset matches both the
active query and the active category. Metrics always use the full list.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from .errors import RecordValidationError
from .logging_setup import get_logger
from .models import (
    Aggregate,
    CanonicalRecord,
    DatasetKind,
    RecordSource,
    SourceState,
    validate_record,
)
from .normalizers import new_record_id
from .pipeline import LoadResult

_logger = get_logger("profinance.state")

# Text fields matched by ``search`` (case-insensitive substring).
_SEARCH_FIELDS: Mapping[DatasetKind, tuple[str, ...]] = {
    DatasetKind.EXPENSES: ("product", "category", "payment_method", "notes"),
    DatasetKind.INCOME: ("entity", "payment_method", "notes"),
    DatasetKind.DEBTS: ("entity", "notes"),
    DatasetKind.CAPITAL: ("description", "type", "category", "notes"),
    DatasetKind.INVESTMENTS: ("description", "type", "category", "notes"),
}

# Field summed by the metrics.
_AMOUNT_FIELD: Mapping[DatasetKind, str] = {
    DatasetKind.EXPENSES: "price",
    DatasetKind.INCOME: "amount",
    DatasetKind.DEBTS: "current_balance",
    DatasetKind.CAPITAL: "amount",
    DatasetKind.INVESTMENTS: "current_value",
}

# Field used by the category filter and per-category totals. Income and debts
# have no category column; they group by entity.
_GROUP_FIELD: Mapping[DatasetKind, str] = {
    DatasetKind.EXPENSES: "category",
    DatasetKind.INCOME: "entity",
    DatasetKind.DEBTS: "entity",
    DatasetKind.CAPITAL: "category",
    DatasetKind.INVESTMENTS: "category",
}


def _validation_messages(e: ValidationError) -> list[str]:
    out: list[str] = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "record"
        out.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return out


class DatasetView:
    """Editable, filterable list of one kind's records."""

    def __init__(
        self,
        kind: DatasetKind | str,
        records: Iterable[CanonicalRecord] = (),
        *,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.kind = DatasetKind(kind)
        self._records: list[CanonicalRecord] = list(records)
        self._id_factory = id_factory or new_record_id
        self._query = ""
        self._category: str | None = None

    # -- contents ---------------------------------------------------------------

    @property
    def records(self) -> tuple[CanonicalRecord, ...]:
        return tuple(self._records)

    @property
    def visible(self) -> list[CanonicalRecord]:
        """Records matching the active query and category, in list order."""

        return [r for r in self._records if self._matches(r)]

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: str) -> CanonicalRecord | None:
        for r in self._records:
            if r.id == record_id:
                return r
        return None

    def _index(self, record_id: str) -> int:
        for i, r in enumerate(self._records):
            if r.id == record_id:
                return i
        raise KeyError(record_id)

    def _validate(self, data: dict[str, Any]) -> CanonicalRecord:
        try:
            return validate_record(self.kind, data)
        except ValidationError as e:
            raise RecordValidationError(self.kind.value, _validation_messages(e)) from e

    # -- edits ------------------------------------------------------------------

    def replace(self, records: Iterable[CanonicalRecord]) -> None:
        """Swap in a freshly loaded list; active filters stay applied."""

        self._records = list(records)

    def add(self, **fields: Any) -> CanonicalRecord:
        """Validate ``fields`` as a new record and put it first in the list.

        Raises :class:`RecordValidationError` and leaves the list untouched
        when the input is invalid. A missing ``id`` is generated.
        """

        data = dict(fields)
        if not data.get("id"):
            data["id"] = self._id_factory()
        record = self._validate(data)
        self._records.insert(0, record)
        _logger.debug("state:add kind=%s id=%s", self.kind.value, record.id)
        return record

    def update(self, record_id: str, **fields: Any) -> CanonicalRecord:
        """Replace the record ``record_id`` with a copy carrying ``fields``.

        Raises ``KeyError`` for an unknown id and
        :class:`RecordValidationError` for invalid input.
        """

        i = self._index(record_id)
        data = self._records[i].model_dump()
        data.update(fields)
        data["id"] = record_id
        record = self._validate(data)
        self._records[i] = record
        _logger.debug("state:update kind=%s id=%s", self.kind.value, record_id)
        return record

    def delete(self, record_id: str) -> bool:
        """Remove ``record_id``; returns ``False`` when it is not in the list."""

        try:
            i = self._index(record_id)
        except KeyError:
            return False
        del self._records[i]
        _logger.debug("state:delete kind=%s id=%s", self.kind.value, record_id)
        return True

    # -- filters ----------------------------------------------------------------

    def _matches(self, r: CanonicalRecord) -> bool:
        if self._category and getattr(r, _GROUP_FIELD[self.kind]) != self._category:
            return False
        if not self._query:
            return True
        return any(
            self._query in str(getattr(r, name)).lower() for name in _SEARCH_FIELDS[self.kind]
        )

    def search(self, query: str) -> list[CanonicalRecord]:
        self._query = (query or "").strip().lower()
        return self.visible

    def filter_category(self, category: str | None) -> list[CanonicalRecord]:
        self._category = category or None
        return self.visible

    def clear_filters(self) -> list[CanonicalRecord]:
        self._query = ""
        self._category = None
        return self.visible

    def categories(self) -> list[str]:
        """Distinct group values, sorted, for filter dropdowns."""

        return sorted({getattr(r, _GROUP_FIELD[self.kind]) for r in self._records})

    # -- metrics ----------------------------------------------------------------

    def _amount(self, r: CanonicalRecord) -> float:
        return float(getattr(r, _AMOUNT_FIELD[self.kind]))

    def total(self) -> float:
        return sum(self._amount(r) for r in self._records)

    def monthly_total(self, today: dt.date | None = None) -> float:
        """Sum of records dated in the calendar month of ``today``."""

        day = today or dt.date.today()
        return sum(
            self._amount(r)
            for r in self._records
            if r.date.year == day.year and r.date.month == day.month
        )

    def daily_average(self, today: dt.date | None = None) -> float:
        """Total of the last 30 days divided by 30 (``0`` when nothing is recent)."""

        day = today or dt.date.today()
        cutoff = day - dt.timedelta(days=30)
        recent = [self._amount(r) for r in self._records if r.date >= cutoff]
        if not recent:
            return 0.0
        return sum(recent) / 30

    def category_totals(
        self, period_days: int = 30, today: dt.date | None = None, *, limit: int = 10
    ) -> list[tuple[str, float]]:
        """Top ``limit`` groups by summed amount over the last ``period_days``."""

        day = today or dt.date.today()
        cutoff = day - dt.timedelta(days=period_days)
        totals: defaultdict[str, float] = defaultdict(float)
        for r in self._records:
            if r.date >= cutoff:
                totals[getattr(r, _GROUP_FIELD[self.kind])] += self._amount(r)
        ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
        return ranked[:limit]

    def categories_count(self) -> int:
        return len({getattr(r, _GROUP_FIELD[self.kind]) for r in self._records})


@dataclass(frozen=True, slots=True)
class FinancialSummary:
    total_income: float
    total_expenses: float
    total_debt: float
    total_investments: float
    liquid_money: float
    total_capital: float


def _sum(records: Iterable[CanonicalRecord] | None, field: str) -> float:
    return sum(float(getattr(r, field)) for r in records or ())


def financial_summary(aggregate: Aggregate) -> FinancialSummary:
    """Dashboard cards: liquid = income - expenses; capital = liquid + investments - debt."""

    income = _sum(aggregate.income, "amount")
    expenses = _sum(aggregate.expenses, "price")
    debt = _sum(aggregate.debts, "current_balance")
    investments = _sum(aggregate.investments, "current_value")
    liquid = income - expenses
    return FinancialSummary(
        total_income=income,
        total_expenses=expenses,
        total_debt=debt,
        total_investments=investments,
        liquid_money=liquid,
        total_capital=liquid + investments - debt,
    )


class AppState:
    """Views and connection state for every kind, fed by pipeline results.

    Usage
    -----
    state = AppState()
    pipeline.subscribe(state.on_state)
    state.apply(pipeline.load(DatasetKind.EXPENSES))
    """

    def __init__(self) -> None:
        self.views: dict[DatasetKind, DatasetView] = {k: DatasetView(k) for k in DatasetKind}
        self.states: dict[DatasetKind, SourceState] = {k: SourceState.IDLE for k in DatasetKind}
        self.sources: dict[DatasetKind, RecordSource] = {}
        self.errors: dict[DatasetKind, BaseException] = {}

    def view(self, kind: DatasetKind | str) -> DatasetView:
        return self.views[DatasetKind(kind)]

    def on_state(
        self, kind: DatasetKind, state: SourceState, error: BaseException | None = None
    ) -> None:
        """Pipeline observer: track the latest state of ``kind``."""

        self.states[kind] = state
        if error is not None:
            self.errors[kind] = error

    def apply(self, result: LoadResult) -> None:
        """Replace the view of ``result.kind`` with the loaded records."""

        self.views[result.kind].replace(result.records)
        self.states[result.kind] = result.state
        self.sources[result.kind] = result.source
        if result.error is not None:
            self.errors[result.kind] = result.error
        else:
            self.errors.pop(result.kind, None)

    @property
    def overall_state(self) -> SourceState:
        """Worst state across kinds that have left ``idle``."""

        active = [s for s in self.states.values() if s is not SourceState.IDLE]
        if not active:
            return SourceState.IDLE
        for state in (SourceState.ERROR, SourceState.OFFLINE, SourceState.CONNECTING):
            if state in active:
                return state
        return SourceState.CONNECTED

    def aggregate(self) -> Aggregate:
        """Current view contents as an :class:`Aggregate` (edits included)."""

        agg = Aggregate()
        for kind, view in self.views.items():
            if kind in self.sources:
                agg = agg.with_records(kind, view.records)
        return agg

    def summary(self) -> FinancialSummary:
        return financial_summary(self.aggregate())


__all__ = ["AppState", "DatasetView", "FinancialSummary", "financial_summary"]
