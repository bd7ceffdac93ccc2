"""Time-boxed cache of the last successful records of each dataset kind.

One JSON file per cache key holds ``{"data": <aggregate>, "timestamp":
<ISO-8601>, "synced": {<kind>: <ISO-8601>}}``. Each kind carries its own
fetch time: a kind older than the TTL (5 minutes by default) reads as absent
while fresher kinds in the same file are still served. ``put`` merges one
kind into the entry, so loading one kind never refreshes or drops another.
When no kind is fresh the file is removed.

Cache layout (relative to the cache root, default: ``./.cache``)::

    <cache_root>/<cache_key>.json

The root can be moved with ``PROFINANCE_CACHE_DIR``. Writes go to a ``.tmp``
sibling first and are moved into place with ``os.replace``.

Storage problems (unwritable directory, full disk, corrupt or foreign JSON)
are never surfaced: ``save`` and ``put`` report ``False`` and ``load`` reports
a miss.
"""

from __future__ import annotations

import contextlib
import datetime as dt
import os
import re
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import ValidationError

from .config import CACHE_KEY, CACHE_TTL_SECONDS, default_cache_dir
from .errors import StorageError
from .logging_setup import get_logger
from .models import Aggregate, CacheEntry, CanonicalRecord, DatasetKind

_CACHE_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

_logger = get_logger("profinance.cache")

# (inode, mtime_ns) of the file a read came from.
type _FileStamp = tuple[int, int]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def _validate_cache_key(key: str) -> str:
    """Keys become file names; reject anything that could escape the root."""

    if not _CACHE_KEY_RE.fullmatch(key) or key in {".", ".."}:
        raise ValueError(f"Invalid cache key {key!r}: use letters, digits, '_', '-' or '.'")
    return key


def _as_aware(ts: dt.datetime) -> dt.datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=dt.UTC)


class CacheStore:
    """File-backed store for one :class:`Aggregate` with a TTL per kind.

    Parameters
    ----------
    root:
        Directory holding cache files. ``None`` resolves the root on every
        call (``PROFINANCE_CACHE_DIR`` or ``./.cache``).
    key:
        Cache key; becomes ``<key>.json``.
    ttl_seconds:
        Maximum age of a readable kind.
    clock:
        Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        *,
        root: str | os.PathLike[str] | None = None,
        key: str = CACHE_KEY,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._root = Path(root).expanduser().resolve() if root is not None else None
        self._key = _validate_cache_key(key)
        self._ttl = dt.timedelta(seconds=ttl_seconds)
        self._clock = clock or _utcnow

    @property
    def path(self) -> Path:
        root = self._root if self._root is not None else default_cache_dir()
        return root / f"{self._key}.json"

    @property
    def ttl(self) -> dt.timedelta:
        return self._ttl

    # -- raw I/O (raises StorageError) -----------------------------------------

    def _write(self, entry: CacheEntry) -> None:
        path = self.path
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(entry.model_dump_json(), encoding="utf-8")
            os.replace(tmp, path)
        except (OSError, ValueError, TypeError) as e:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StorageError(f"cache write failed: {e}") from e

    def _read(self) -> tuple[CacheEntry, _FileStamp] | None:
        path = self.path
        try:
            with path.open("r", encoding="utf-8") as fh:
                st = os.fstat(fh.fileno())
                text = fh.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"cache read failed: {e}") from e
        try:
            entry = CacheEntry.model_validate_json(text)
        except ValidationError as e:
            raise StorageError(f"cache entry invalid: {e.error_count()} error(s)") from e
        return entry, (st.st_ino, st.st_mtime_ns)

    def _evict(self, stamp: _FileStamp) -> None:
        """Remove the file only if it is still the one that was read."""

        path = self.path
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return
        except OSError:
            _logger.debug("cache:evict_failed path=%s", os.fspath(path), exc_info=True)
            return
        if (st.st_ino, st.st_mtime_ns) != stamp:
            _logger.debug("cache:evict_skipped path=%s (replaced since read)", os.fspath(path))
            return
        self.clear()

    def _fresh(self, entry: CacheEntry) -> tuple[Aggregate, dict[DatasetKind, dt.datetime]]:
        """Drop the kinds of ``entry`` that are older than the TTL."""

        now = self._clock()
        data = entry.data
        synced: dict[DatasetKind, dt.datetime] = {}
        stale: list[DatasetKind] = []
        for kind in DatasetKind:
            if not data.has(kind):
                continue
            at = _as_aware(entry.synced_at(kind))
            if now - at > self._ttl:
                stale.append(kind)
            else:
                synced[kind] = at
        if stale:
            _logger.debug("cache:expired kinds=%s", ",".join(k.value for k in stale))
            data = data.model_copy(update={k.value: None for k in stale})
        return data, synced

    def _store(self, data: Aggregate, synced: dict[DatasetKind, dt.datetime]) -> bool:
        entry = CacheEntry(data=data, timestamp=min(synced.values()), synced=synced)
        try:
            self._write(entry)
        except StorageError:
            _logger.debug("cache:save_failed path=%s", os.fspath(self.path), exc_info=True)
            return False
        _logger.debug(
            "cache:saved path=%s kinds=%s",
            os.fspath(self.path),
            ",".join(k.value for k in synced),
        )
        return True

    # -- public API -------------------------------------------------------------

    def save(self, aggregate: Aggregate) -> bool:
        """Replace the entry with ``aggregate``, every kind stamped now.

        Returns ``False`` (after logging) when the write failed.
        """

        now = self._clock()
        synced = {k: now for k in DatasetKind if aggregate.has(k)}
        if not synced:
            self.clear()
            return True
        return self._store(aggregate, synced)

    def put(
        self,
        kind: DatasetKind,
        records: Sequence[CanonicalRecord],
        *,
        synced_at: dt.datetime | None = None,
    ) -> bool:
        """Merge freshly fetched ``records`` of ``kind`` into the entry.

        Other fresh kinds keep their own fetch time; expired ones are dropped.
        Returns ``False`` (after logging) when the write failed.
        """

        at = _as_aware(synced_at or self._clock())
        data, synced = Aggregate(), {}
        try:
            found = self._read()
        except StorageError:
            _logger.debug("cache:read_failed path=%s", os.fspath(self.path), exc_info=True)
            found = None
        if found is not None:
            data, synced = self._fresh(found[0])
        synced[kind] = at
        latest = max(synced.values())
        return self._store(data.with_records(kind, records, last_sync=latest), synced)

    def load(self) -> Aggregate | None:
        """Return the fresh kinds of the cached aggregate.

        ``None`` when the entry is absent, unreadable or has no fresh kind.
        """

        try:
            found = self._read()
        except StorageError:
            _logger.debug("cache:read_failed path=%s", os.fspath(self.path), exc_info=True)
            return None
        if found is None:
            return None

        entry, stamp = found
        data, synced = self._fresh(entry)
        if not synced:
            age = self._clock() - _as_aware(entry.timestamp)
            _logger.debug("cache:expired age_s=%.1f", age.total_seconds())
            self._evict(stamp)
            return None
        return data

    def clear(self) -> None:
        """Remove the cache entry; missing or unremovable files are ignored."""

        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            _logger.debug("cache:clear_failed path=%s", os.fspath(self.path), exc_info=True)


__all__ = ["CacheStore"]
