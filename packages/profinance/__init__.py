"""Public interface for the ``profinance`` package.

This module exposes the ingestion pipeline, its collaborators and the public
models/types as the stable import surface. There is no runtime logic here,
only symbol re-exports.
"""

from .cache import CacheStore
from .config import Settings, load_settings
from .csv_parser import parse_csv
from .errors import (
    EmptyDataset,
    ProFinanceError,
    RecordValidationError,
    SourceUnavailable,
    StorageError,
    TransportError,
)
from .export import export_filename, to_csv
from .fetcher import SourceFetcher
from .models import (
    Aggregate,
    CapitalMovementRecord,
    CapitalMovementType,
    DatasetKind,
    DebtRecord,
    ExpenseRecord,
    IncomeRecord,
    InvestmentRecord,
    RecordSource,
    SourceState,
)
from .normalizers import RecordNormalizer
from .pipeline import DataIngestionPipeline, LoadResult
from .refresh import RefreshScheduler
from .sample_data import generate_sample
from .state import AppState, DatasetView, financial_summary

__all__ = [
    # Pipeline and stages
    "DataIngestionPipeline",
    "LoadResult",
    "SourceFetcher",
    "parse_csv",
    "RecordNormalizer",
    "CacheStore",
    "generate_sample",
    "RefreshScheduler",
    # Presentation helpers
    "AppState",
    "DatasetView",
    "financial_summary",
    "export_filename",
    "to_csv",
    # Config
    "Settings",
    "load_settings",
    # Models
    "Aggregate",
    "CapitalMovementRecord",
    "CapitalMovementType",
    "DatasetKind",
    "DebtRecord",
    "ExpenseRecord",
    "IncomeRecord",
    "InvestmentRecord",
    "RecordSource",
    "SourceState",
    # Errors
    "EmptyDataset",
    "ProFinanceError",
    "RecordValidationError",
    "SourceUnavailable",
    "StorageError",
    "TransportError",
]
