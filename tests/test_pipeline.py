import datetime as dt
import textwrap

import pytest

from profinance.cache import CacheStore
from profinance.errors import EmptyDataset, SourceUnavailable
from profinance.fetcher import SourceFetcher
from profinance.models import DatasetKind, ExpenseRecord, RecordSource, SourceState
from profinance.pipeline import DataIngestionPipeline
from profinance.sample_data import SAMPLE_SIZES
from tests.helpers.fakes import FakeClock, FakeOpener, ok, status

TODAY = dt.date(2024, 12, 19)

EXPENSES_CSV = textwrap.dedent(
    """\
    Producto,Fecha,Precio,Forma de pago,Hora,Categoria
    Café,19/12/2024,15.000,Débito,08:30,Alimentos
    Uber,18/12/2024,32.500,Efectivo,21:10,Transporte
    """
)

INCOME_CSV = "Fecha,Entidad,Monto,Forma de pago,Hora\n2024-12-01,Empresa SA,5.000.000,Transferencia,09:00\n"


def _pipeline(tmp_path, opener, *, sheet_ids=None, clock=None):
    clock = clock or FakeClock()
    return DataIngestionPipeline(
        SourceFetcher(opener),
        CacheStore(root=tmp_path / "cache", clock=clock),
        sheet_ids=sheet_ids if sheet_ids is not None else {DatasetKind.EXPENSES: "s-exp"},
        today=lambda: TODAY,
        clock=clock,
    )


def _recorder(pipeline):
    seen = []
    pipeline.subscribe(lambda kind, state, error: seen.append((kind, state)))
    return seen


def test_all_candidates_failing_serves_sample_offline(tmp_path):
    opener = FakeOpener({"/pub?": status(404), "/export?": OSError("unreachable")})
    pipeline = _pipeline(tmp_path, opener)
    seen = _recorder(pipeline)

    result = pipeline.load("expenses")

    assert result.state is SourceState.OFFLINE
    assert result.source is RecordSource.SAMPLE
    assert not result.is_live
    assert len(result.records) == SAMPLE_SIZES[DatasetKind.EXPENSES]
    assert isinstance(result.error, SourceUnavailable)
    assert pipeline.state(DatasetKind.EXPENSES) is SourceState.OFFLINE
    assert seen == [
        (DatasetKind.EXPENSES, SourceState.CONNECTING),
        (DatasetKind.EXPENSES, SourceState.OFFLINE),
    ]
    assert len(opener.calls) == 2
    # Sample data is shown but never cached.
    assert pipeline.current.expenses == result.records
    assert not pipeline.cache.path.exists()


def test_load_text_parses_and_normalizes_only():
    pipeline = DataIngestionPipeline(
        SourceFetcher(FakeOpener()), CacheStore(), sheet_ids={}, today=lambda: TODAY
    )

    records = pipeline.load_text("expenses", "Fecha,Producto,Precio-Gs\n2024-12-19,Pizza,47500\n")

    assert len(records) == 1
    rec = records[0]
    assert isinstance(rec, ExpenseRecord)
    assert rec.product == "Pizza"
    assert rec.price == 47500.0
    assert rec.date == dt.date(2024, 12, 19)
    assert pipeline.state(DatasetKind.EXPENSES) is SourceState.IDLE


def test_network_success_is_cached_and_then_served_from_cache(tmp_path):
    clock = FakeClock()
    opener = FakeOpener({"/pub?": ok(EXPENSES_CSV)})
    pipeline = _pipeline(tmp_path, opener, clock=clock)

    first = pipeline.load(DatasetKind.EXPENSES)

    assert first.state is SourceState.CONNECTED
    assert first.source is RecordSource.NETWORK
    assert [r.product for r in first.records] == ["Café", "Uber"]
    assert [r.price for r in first.records] == [15000.0, 32500.0]
    assert pipeline.current.last_sync == clock.now
    assert pipeline.cache.path.exists()

    second = pipeline.load(DatasetKind.EXPENSES)

    assert second.source is RecordSource.CACHE
    assert second.state is SourceState.CONNECTED
    assert second.records == first.records
    assert len(opener.calls) == 1


def test_no_cache_forces_fetch(tmp_path):
    opener = FakeOpener({"/pub?": ok(EXPENSES_CSV)})
    pipeline = _pipeline(tmp_path, opener)

    pipeline.load(DatasetKind.EXPENSES)
    again = pipeline.load(DatasetKind.EXPENSES, use_cache=False)

    assert again.source is RecordSource.NETWORK
    assert len(opener.calls) == 2


def test_expired_cache_refetches(tmp_path):
    clock = FakeClock()
    opener = FakeOpener({"/pub?": ok(EXPENSES_CSV)})
    pipeline = _pipeline(tmp_path, opener, clock=clock)

    pipeline.load(DatasetKind.EXPENSES)
    clock.advance(301)
    result = pipeline.load(DatasetKind.EXPENSES)

    assert result.source is RecordSource.NETWORK
    assert len(opener.calls) == 2


@pytest.mark.parametrize(
    "body",
    [
        "Producto,Fecha,Precio\n",
        "Producto,Fecha,Precio\nGratis,2024-12-19,0\nNada,2024-12-18,abc\n",
    ],
)
def test_reachable_but_empty_sheet_is_offline(tmp_path, body):
    pipeline = _pipeline(tmp_path, FakeOpener({"/pub?": ok(body)}))

    result = pipeline.load(DatasetKind.EXPENSES)

    assert result.state is SourceState.OFFLINE
    assert result.source is RecordSource.SAMPLE
    assert isinstance(result.error, EmptyDataset)
    assert result.records


def test_unexpected_failure_is_error_with_sample_data(tmp_path):
    pipeline = _pipeline(tmp_path, FakeOpener({"/pub?": RuntimeError("boom")}))
    seen = _recorder(pipeline)

    result = pipeline.load(DatasetKind.EXPENSES)

    assert result.state is SourceState.ERROR
    assert result.source is RecordSource.SAMPLE
    assert isinstance(result.error, RuntimeError)
    assert result.records
    assert seen[-1] == (DatasetKind.EXPENSES, SourceState.ERROR)


def test_kind_without_sheet_goes_offline_without_fetching(tmp_path):
    opener = FakeOpener()
    pipeline = _pipeline(tmp_path, opener)

    result = pipeline.load(DatasetKind.CAPITAL)

    assert result.state is SourceState.OFFLINE
    assert result.source is RecordSource.SAMPLE
    assert result.error is None
    assert opener.calls == []


def test_broken_observer_does_not_break_loading(tmp_path):
    pipeline = _pipeline(tmp_path, FakeOpener({"/pub?": ok(EXPENSES_CSV)}))

    def _boom(kind, state, error):
        raise ValueError("observer bug")

    pipeline.subscribe(_boom)
    seen = _recorder(pipeline)

    assert pipeline.load(DatasetKind.EXPENSES).state is SourceState.CONNECTED
    assert seen[-1] == (DatasetKind.EXPENSES, SourceState.CONNECTED)


def test_unsubscribe_stops_notifications(tmp_path):
    pipeline = _pipeline(tmp_path, FakeOpener())
    seen = []
    unsubscribe = pipeline.subscribe(lambda *a: seen.append(a))
    unsubscribe()
    unsubscribe()

    pipeline.load(DatasetKind.CAPITAL)

    assert seen == []


def test_load_all_falls_back_per_kind(tmp_path):
    clock = FakeClock()
    opener = FakeOpener(
        {
            "s-exp/pub?": ok(EXPENSES_CSV),
            "s-inc/pub?": status(500, "Server Error"),
            "s-inc/export?": status(500, "Server Error"),
        }
    )
    pipeline = _pipeline(
        tmp_path,
        opener,
        sheet_ids={DatasetKind.EXPENSES: "s-exp", DatasetKind.INCOME: "s-inc"},
        clock=clock,
    )

    aggregate = pipeline.load_all()

    assert all(aggregate.has(k) for k in DatasetKind)
    assert [r.product for r in aggregate.expenses] == ["Café", "Uber"]
    assert len(aggregate.income) == SAMPLE_SIZES[DatasetKind.INCOME]
    assert aggregate.last_sync == clock.now
    assert pipeline.current == aggregate
    assert {k: pipeline.state(k) for k in DatasetKind} == {
        DatasetKind.EXPENSES: SourceState.CONNECTED,
        DatasetKind.INCOME: SourceState.OFFLINE,
        DatasetKind.DEBTS: SourceState.OFFLINE,
        DatasetKind.CAPITAL: SourceState.OFFLINE,
        DatasetKind.INVESTMENTS: SourceState.OFFLINE,
    }

    # Only the live kind reached the cache.
    cached = pipeline.cache.load()
    assert cached is not None
    assert cached.has(DatasetKind.EXPENSES)
    assert not cached.has(DatasetKind.INCOME)


def test_cache_is_shared_across_kinds(tmp_path):
    opener = FakeOpener({"s-exp/pub?": ok(EXPENSES_CSV), "s-inc/pub?": ok(INCOME_CSV)})
    ids = {DatasetKind.EXPENSES: "s-exp", DatasetKind.INCOME: "s-inc"}
    clock = FakeClock()

    _pipeline(tmp_path, opener, sheet_ids=ids, clock=clock).load_all(
        [DatasetKind.EXPENSES, DatasetKind.INCOME]
    )
    # A fresh pipeline over the same cache directory is served from cache.
    fresh = _pipeline(tmp_path, opener, sheet_ids=ids, clock=clock)
    result = fresh.load(DatasetKind.INCOME)

    assert result.source is RecordSource.CACHE
    assert [r.entity for r in result.records] == ["Empresa SA"]
    assert len(opener.calls) == 2


def test_loading_another_kind_does_not_extend_cache_lifetime(tmp_path):
    clock = FakeClock()
    opener = FakeOpener({"s-exp/pub?": ok(EXPENSES_CSV), "s-inc/pub?": ok(INCOME_CSV)})
    pipeline = _pipeline(
        tmp_path,
        opener,
        sheet_ids={DatasetKind.EXPENSES: "s-exp", DatasetKind.INCOME: "s-inc"},
        clock=clock,
    )

    pipeline.load(DatasetKind.EXPENSES)
    clock.advance(240)
    assert pipeline.load(DatasetKind.INCOME).source is RecordSource.NETWORK
    clock.advance(200)

    # Expenses were fetched 440 s ago: past the TTL even though income was saved since.
    assert pipeline.load(DatasetKind.EXPENSES).source is RecordSource.NETWORK
    # Income was fetched 200 s ago and is still served from cache.
    assert pipeline.load(DatasetKind.INCOME).source is RecordSource.CACHE
    assert len(opener.calls) == 3


def test_new_pipeline_fetch_keeps_other_cached_kinds(tmp_path):
    clock = FakeClock()
    opener = FakeOpener({"s-exp/pub?": ok(EXPENSES_CSV), "s-inc/pub?": ok(INCOME_CSV)})
    ids = {DatasetKind.EXPENSES: "s-exp", DatasetKind.INCOME: "s-inc"}

    _pipeline(tmp_path, opener, sheet_ids=ids, clock=clock).load(DatasetKind.EXPENSES)
    second = _pipeline(tmp_path, opener, sheet_ids=ids, clock=clock)
    second.load(DatasetKind.INCOME)

    cached = second.cache.load()
    assert cached.has(DatasetKind.EXPENSES)
    assert cached.has(DatasetKind.INCOME)
    # A third process is served both kinds without touching the network.
    third = _pipeline(tmp_path, opener, sheet_ids=ids, clock=clock)
    assert third.load(DatasetKind.EXPENSES).source is RecordSource.CACHE
    assert len(opener.calls) == 2
