"""Data ingestion pipeline: cache → fetch → parse → normalize → sample fallback.

Each ``load(kind)`` walks a small state machine and reports every transition
to subscribed observers::

    Idle → Connecting → Connected   (cache hit, or fetched with ≥ 1 record)
                      → Offline     (all endpoints failed, empty sheet, or no
                                     sheet configured; sample data served)
                      → Error       (unexpected exception; sample data served,
                                     exception attached to the result)

``load`` never raises for data problems: the caller always gets records to
render plus the state that says whether they are live.

Aggregates are values. A successful load builds a new aggregate with that
kind's records swapped in and assigns it in one statement, so overlapping
loads resolve as last-writer-wins. Only fetched records reach the cache, one
kind at a time with their own fetch time (:meth:`CacheStore.put`); sample
records never do.
"""

from __future__ import annotations

import datetime as dt
import threading
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .cache import CacheStore
from .config import DEFAULT_SHEET_IDS, Settings
from .csv_parser import Grammar, parse_csv
from .errors import EmptyDataset, SourceUnavailable
from .fetcher import SourceFetcher
from .logging_setup import get_logger
from .models import (
    Aggregate,
    CanonicalRecord,
    DatasetKind,
    RecordSource,
    SourceState,
)
from .normalizers import RecordNormalizer
from .sample_data import DEFAULT_SEED, generate_sample

_logger = get_logger("profinance.pipeline")


@dataclass(frozen=True, slots=True)
class LoadResult:
    """Outcome of one ``load``: the records to render and where they came from."""

    kind: DatasetKind
    records: tuple[CanonicalRecord, ...]
    state: SourceState
    source: RecordSource
    error: BaseException | None = None

    @property
    def is_live(self) -> bool:
        return self.source is not RecordSource.SAMPLE


type StateObserver = Callable[[DatasetKind, SourceState, BaseException | None], None]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class DataIngestionPipeline:
    """Load canonical records per dataset kind with cache and sample fallbacks.

    Parameters
    ----------
    fetcher:
        Source of raw CSV text. Defaults to a :class:`SourceFetcher` over
        ``urllib``.
    cache:
        Aggregate cache. Defaults to a :class:`CacheStore` under the default
        cache root.
    sheet_ids:
        Sheet id per kind. Kinds without an id are served sample data.
    grammar:
        CSV grammar handed to :func:`parse_csv`.
    sample_seed:
        Seed for the sample-data generator.
    today / clock:
        Injectable date and time sources (tests).
    """

    def __init__(
        self,
        fetcher: SourceFetcher | None = None,
        cache: CacheStore | None = None,
        *,
        sheet_ids: Mapping[DatasetKind, str] | None = None,
        grammar: Grammar = "rfc4180",
        sample_seed: int = DEFAULT_SEED,
        today: Callable[[], dt.date] | None = None,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._fetcher = fetcher or SourceFetcher()
        self._cache = cache or CacheStore()
        self._sheet_ids = dict(DEFAULT_SHEET_IDS if sheet_ids is None else sheet_ids)
        self._grammar: Grammar = grammar
        self._sample_seed = sample_seed
        self._today = today or dt.date.today
        self._clock = clock or _utcnow

        self._observers: list[StateObserver] = []
        self._states: dict[DatasetKind, SourceState] = {k: SourceState.IDLE for k in DatasetKind}
        self._current = Aggregate()
        # Serializes commits and cache reads/writes within this pipeline.
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, *, fetcher: SourceFetcher | None = None
    ) -> DataIngestionPipeline:
        return cls(
            fetcher or SourceFetcher(timeout=settings.fetch_timeout_seconds),
            CacheStore(
                root=settings.cache_dir,
                key=settings.cache_key,
                ttl_seconds=settings.cache_ttl_seconds,
            ),
            sheet_ids=settings.sheet_ids,
        )

    # -- observers and state ----------------------------------------------------

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register ``observer`` for state transitions; returns an unsubscribe callable."""

        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def state(self, kind: DatasetKind) -> SourceState:
        return self._states[kind]

    @property
    def current(self) -> Aggregate:
        """Last completed aggregate, sample-backed kinds included."""

        return self._current

    @property
    def cache(self) -> CacheStore:
        return self._cache

    def _transition(
        self, kind: DatasetKind, state: SourceState, error: BaseException | None = None
    ) -> None:
        self._states[kind] = state
        _logger.debug("pipeline:state kind=%s state=%s", kind.value, state.value)
        for observer in list(self._observers):
            try:
                observer(kind, state, error)
            except Exception:
                # A broken observer must not break loading.
                _logger.warning(
                    "pipeline:observer_failed kind=%s state=%s", kind.value, state.value,
                    exc_info=True,
                )

    # -- commits ----------------------------------------------------------------

    def _commit_live(
        self,
        kind: DatasetKind,
        records: tuple[CanonicalRecord, ...],
        *,
        last_sync: dt.datetime | None,
        persist: bool,
    ) -> None:
        with self._lock:
            self._current = self._current.with_records(kind, records, last_sync=last_sync)
            if persist:
                self._cache.put(kind, records, synced_at=last_sync)

    def _commit_sample(self, kind: DatasetKind, records: tuple[CanonicalRecord, ...]) -> None:
        with self._lock:
            self._current = self._current.with_records(kind, records)

    # -- stages -----------------------------------------------------------------

    def load_text(self, kind: DatasetKind | str, csv_text: str) -> list[CanonicalRecord]:
        """Parse + normalize ``csv_text`` only (no cache, no network, no state)."""

        k = DatasetKind(kind)
        rows = parse_csv(csv_text, grammar=self._grammar)
        return RecordNormalizer.normalize(k, rows, today=self._today())

    def _fallback(
        self, kind: DatasetKind, state: SourceState, error: BaseException | None
    ) -> LoadResult:
        records = tuple(generate_sample(kind, seed=self._sample_seed, today=self._today()))
        self._commit_sample(kind, records)
        self._transition(kind, state, error)
        return LoadResult(kind, records, state, RecordSource.SAMPLE, error)

    def load(self, kind: DatasetKind | str, *, use_cache: bool = True) -> LoadResult:
        """Return the records of ``kind`` from cache, network or sample data."""

        k = DatasetKind(kind)
        self._transition(k, SourceState.CONNECTING)

        if use_cache:
            with self._lock:
                cached = self._cache.load()
            if cached is not None and cached.has(k):
                records = cached.records(k) or ()
                self._commit_live(k, records, last_sync=cached.last_sync, persist=False)
                self._transition(k, SourceState.CONNECTED)
                _logger.info("pipeline:cache_hit kind=%s records=%d", k.value, len(records))
                return LoadResult(k, records, SourceState.CONNECTED, RecordSource.CACHE)

        sheet_id = self._sheet_ids.get(k)
        if not sheet_id:
            _logger.info("pipeline:no_sheet kind=%s; serving sample data", k.value)
            return self._fallback(k, SourceState.OFFLINE, None)

        try:
            text = self._fetcher.fetch(sheet_id)
            rows = parse_csv(text, grammar=self._grammar)
            normalized = RecordNormalizer.normalize(k, rows, today=self._today())
            if not normalized:
                raise EmptyDataset(k.value, len(rows))
        except (SourceUnavailable, EmptyDataset) as e:
            _logger.warning("pipeline:offline kind=%s reason=%s", k.value, e)
            return self._fallback(k, SourceState.OFFLINE, e)
        except Exception as e:
            _logger.error("pipeline:error kind=%s", k.value, exc_info=True)
            return self._fallback(k, SourceState.ERROR, e)

        records = tuple(normalized)
        self._commit_live(k, records, last_sync=self._clock(), persist=True)
        self._transition(k, SourceState.CONNECTED)
        _logger.info("pipeline:connected kind=%s records=%d", k.value, len(records))
        return LoadResult(k, records, SourceState.CONNECTED, RecordSource.NETWORK)

    def load_all(
        self,
        kinds: Iterable[DatasetKind] | None = None,
        *,
        use_cache: bool = True,
        max_workers: int = 5,
    ) -> Aggregate:
        """Load several kinds concurrently; each one falls back independently.

        Returns the combined aggregate (also available as :attr:`current`).
        ``last_sync`` is stamped when at least one kind came from the network.
        """

        targets = list(kinds) if kinds is not None else list(DatasetKind)
        if not targets:
            return self._current
        workers = max(1, min(max_workers, len(targets)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda k: self.load(k, use_cache=use_cache), targets))

        if any(r.source is RecordSource.NETWORK for r in results):
            with self._lock:
                self._current = self._current.model_copy(update={"last_sync": self._clock()})
        _logger.info(
            "pipeline:load_all %s",
            " ".join(f"{r.kind.value}={r.state.value}/{len(r.records)}" for r in results),
        )
        return self._current


__all__ = ["DataIngestionPipeline", "LoadResult", "StateObserver"]
