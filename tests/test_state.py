import datetime as dt
import itertools

import pytest

from profinance.errors import RecordValidationError, SourceUnavailable
from profinance.models import (
    Aggregate,
    DatasetKind,
    DebtRecord,
    ExpenseRecord,
    IncomeRecord,
    InvestmentRecord,
    RecordSource,
    SourceState,
)
from profinance.pipeline import LoadResult
from profinance.state import AppState, DatasetView, financial_summary

TODAY = dt.date(2024, 12, 19)


def _expense(id_, date, product, category, price, payment="Efectivo", notes=""):
    return ExpenseRecord(
        id=id_,
        date=date,
        product=product,
        category=category,
        price=price,
        payment_method=payment,
        notes=notes,
    )


def _view():
    counter = itertools.count(1)
    return DatasetView(
        DatasetKind.EXPENSES,
        [
            _expense("e1", dt.date(2024, 12, 19), "Supermercado", "Alimentos", 100_000),
            _expense("e2", dt.date(2024, 12, 2), "Uber", "Transporte", 30_000, "Débito"),
            _expense("e3", dt.date(2024, 11, 25), "Pan", "Alimentos", 5_000, notes="panadería"),
            _expense("e4", dt.date(2024, 6, 1), "Laptop", "Tecnología", 4_000_000, "Crédito"),
        ],
        id_factory=lambda: f"new-{next(counter)}",
    )


def test_add_prepends_validated_record():
    view = _view()

    rec = view.add(date=TODAY, product="Café", category="Alimentos", price=12_000)

    assert rec.id == "new-1"
    assert view.records[0] is rec
    assert rec.time == "12:00"
    assert len(view) == 5


@pytest.mark.parametrize(
    "fields",
    [
        {"date": TODAY, "product": "Café", "price": 0},
        {"date": TODAY, "product": "Café", "price": -5},
        {"date": "not a date", "product": "Café", "price": 10},
        {"date": TODAY, "product": "Café", "price": 10, "time": "99:99"},
        {"date": TODAY, "product": "Café", "price": 10, "unknown": 1},
    ],
)
def test_invalid_input_leaves_list_untouched(fields):
    view = _view()
    before = view.records

    with pytest.raises(RecordValidationError) as ei:
        view.add(**fields)

    assert view.records == before
    assert ei.value.kind == "expenses"
    assert ei.value.messages


def test_update_and_delete():
    view = _view()

    updated = view.update("e2", price=35_000, notes="aeropuerto")

    assert updated.price == 35_000
    assert updated.product == "Uber"
    assert view.get("e2") is updated
    assert [r.id for r in view.records] == ["e1", "e2", "e3", "e4"]

    with pytest.raises(RecordValidationError):
        view.update("e2", price=-1)
    assert view.get("e2") is updated

    with pytest.raises(KeyError):
        view.update("missing", price=1)

    assert view.delete("e3") is True
    assert view.delete("e3") is False
    assert [r.id for r in view.records] == ["e1", "e2", "e4"]


def test_search_and_category_filters_combine():
    view = _view()

    assert [r.id for r in view.search("PAN")] == ["e3"]
    assert [r.id for r in view.search("débito")] == ["e2"]
    assert [r.id for r in view.search("alimentos")] == ["e1", "e3"]

    assert [r.id for r in view.filter_category("Alimentos")] == ["e1", "e3"]
    assert [r.id for r in view.search("super")] == ["e1"]

    view.replace(view.records)  # reload keeps filters
    assert [r.id for r in view.visible] == ["e1"]

    assert len(view.clear_filters()) == 4
    assert view.categories() == ["Alimentos", "Tecnología", "Transporte"]


def test_metrics():
    view = _view()

    assert view.total() == 4_135_000
    assert view.monthly_total(TODAY) == 130_000
    assert view.daily_average(TODAY) == pytest.approx(135_000 / 30)
    assert view.category_totals(30, TODAY) == [("Alimentos", 105_000), ("Transporte", 30_000)]
    assert view.category_totals(365, TODAY, limit=1) == [("Tecnología", 4_000_000)]
    assert view.categories_count() == 3
    assert DatasetView(DatasetKind.EXPENSES).daily_average(TODAY) == 0.0


def test_financial_summary():
    agg = (
        Aggregate()
        .with_records(
            DatasetKind.INCOME,
            [IncomeRecord(id="i1", date=TODAY, entity="Empresa", amount=1_000_000)],
        )
        .with_records(
            DatasetKind.EXPENSES, [_expense("e1", TODAY, "Pan", "Alimentos", 200_000)]
        )
        .with_records(
            DatasetKind.DEBTS,
            [
                DebtRecord(
                    id="d1",
                    date=TODAY,
                    entity="Visa",
                    original_amount=500_000,
                    current_balance=300_000,
                )
            ],
        )
        .with_records(
            DatasetKind.INVESTMENTS,
            [
                InvestmentRecord(
                    id="v1",
                    date=TODAY,
                    description="ETF",
                    initial_amount=100_000,
                    current_value=150_000,
                )
            ],
        )
    )

    s = financial_summary(agg)

    assert s.total_income == 1_000_000
    assert s.total_expenses == 200_000
    assert s.total_debt == 300_000
    assert s.total_investments == 150_000
    assert s.liquid_money == 800_000
    assert s.total_capital == 650_000
    assert financial_summary(Aggregate()).total_capital == 0


def test_app_state_apply_and_overall_state():
    state = AppState()
    assert state.overall_state is SourceState.IDLE

    records = (_expense("e1", TODAY, "Pan", "Alimentos", 5_000),)
    state.apply(
        LoadResult(DatasetKind.EXPENSES, records, SourceState.CONNECTED, RecordSource.NETWORK)
    )
    assert state.view("expenses").records == records
    assert state.overall_state is SourceState.CONNECTED

    err = SourceUnavailable("s-inc", [])
    state.apply(LoadResult(DatasetKind.INCOME, (), SourceState.OFFLINE, RecordSource.SAMPLE, err))
    assert state.overall_state is SourceState.OFFLINE
    assert state.errors[DatasetKind.INCOME] is err

    state.on_state(DatasetKind.DEBTS, SourceState.ERROR, RuntimeError("x"))
    assert state.overall_state is SourceState.ERROR

    agg = state.aggregate()
    assert agg.expenses == records
    assert agg.income == ()
    assert agg.debts is None
    assert state.summary().total_expenses == 5_000
