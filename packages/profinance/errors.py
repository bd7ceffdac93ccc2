"""Exception types raised across the ingestion pipeline.

Only ``RecordValidationError`` is meant to reach end users (inline form
feedback). Transport and storage failures are recovered inside the pipeline
and the cache; they are public so callers and tests can inspect them on a
``LoadResult``.
"""

from __future__ import annotations

from collections.abc import Sequence


class ProFinanceError(Exception):
    """Base class for all package errors."""


class TransportError(ProFinanceError):
    """A single candidate endpoint failed (network error or non-2xx status)."""

    def __init__(self, url: str, reason: str, *, status: int | None = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        prefix = f"HTTP {status}: " if status is not None else ""
        super().__init__(f"{prefix}{reason} ({url})")


class SourceUnavailable(ProFinanceError):
    """Every candidate endpoint for a dataset failed."""

    def __init__(self, dataset_id: str, errors: Sequence[TransportError]) -> None:
        self.dataset_id = dataset_id
        self.errors = list(errors)
        last = self.errors[-1] if self.errors else None
        detail = f": {last}" if last is not None else ""
        super().__init__(
            f"sheet {dataset_id!r} unreachable after {len(self.errors)} attempt(s){detail}. "
            "Check that the sheet is published to the web."
        )

    @property
    def last_error(self) -> TransportError | None:
        return self.errors[-1] if self.errors else None


class EmptyDataset(ProFinanceError):
    """The sheet was reachable but produced no usable rows."""

    def __init__(self, kind: str, raw_rows: int) -> None:
        self.kind = kind
        self.raw_rows = raw_rows
        super().__init__(f"{kind}: {raw_rows} raw row(s), 0 usable after normalization")


class StorageError(ProFinanceError):
    """Cache read/write failure. Always absorbed by ``CacheStore``."""


class RecordValidationError(ProFinanceError):
    """Form input for a record failed validation; the dataset is left untouched."""

    def __init__(self, kind: str, messages: Sequence[str]) -> None:
        self.kind = kind
        self.messages = list(messages)
        super().__init__(f"invalid {kind} record: " + "; ".join(self.messages))


__all__ = [
    "EmptyDataset",
    "ProFinanceError",
    "RecordValidationError",
    "SourceUnavailable",
    "StorageError",
    "TransportError",
]
