"""Static configuration: sheet ids, cache and refresh timings.

Values come from the environment so a local ``.env`` (loaded by the CLI via
``python-dotenv``) can point the dashboard at different spreadsheets. Defaults
are the published ProFinance sheets.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .models import DatasetKind

DEFAULT_SHEET_IDS: Mapping[DatasetKind, str] = {
    DatasetKind.EXPENSES: "1-71MXkppgdH3q-F8t6TnKK4V18s_AHqlMIzxG3mfWLg",
    DatasetKind.DEBTS: "1X6QSvmqkIH87lRQqw96Bv0TPUkjHVpKGjp0z-qEPCL4",
    DatasetKind.INCOME: "1vsWkRV0ehb4_-hGEKzGT5inEnq_9N-vb3vf26KzmXbM",
}

CACHE_KEY = "profinance_cache"
CACHE_TTL_SECONDS = 5 * 60
REFRESH_INTERVAL_SECONDS = 5 * 60
FETCH_TIMEOUT_SECONDS = 15.0

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Alimentos",
    "Transporte",
    "Entretenimiento",
    "Salud",
    "Educación",
    "Vivienda",
    "Servicios",
    "Ropa",
    "Tecnología",
    "Otros",
)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def default_cache_dir() -> Path:
    """``PROFINANCE_CACHE_DIR`` when set, else ``./.cache`` under the working directory."""

    root = os.getenv("PROFINANCE_CACHE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache").resolve()


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved runtime settings.

    ``sheet_ids`` only lists kinds that have a spreadsheet; kinds missing from
    it are served from sample data.
    """

    sheet_ids: Mapping[DatasetKind, str] = field(default_factory=lambda: dict(DEFAULT_SHEET_IDS))
    cache_dir: Path = field(default_factory=default_cache_dir)
    cache_key: str = CACHE_KEY
    cache_ttl_seconds: float = CACHE_TTL_SECONDS
    fetch_timeout_seconds: float = FETCH_TIMEOUT_SECONDS
    refresh_interval_seconds: float = REFRESH_INTERVAL_SECONDS
    log_level: str | None = None


def load_settings() -> Settings:
    """Build :class:`Settings` from ``PROFINANCE_*`` environment variables.

    ``PROFINANCE_<KIND>_SHEET_ID`` overrides the default id for a kind; an
    empty value disables the remote source for that kind.
    """

    sheet_ids: dict[DatasetKind, str] = {}
    for kind in DatasetKind:
        env_name = f"PROFINANCE_{kind.name}_SHEET_ID"
        raw = os.getenv(env_name)
        if raw is None:
            default = DEFAULT_SHEET_IDS.get(kind)
            if default:
                sheet_ids[kind] = default
            continue
        if raw.strip():
            sheet_ids[kind] = raw.strip()

    return Settings(
        sheet_ids=sheet_ids,
        cache_dir=default_cache_dir(),
        cache_ttl_seconds=_env_float("PROFINANCE_CACHE_TTL_SECONDS", CACHE_TTL_SECONDS),
        fetch_timeout_seconds=_env_float("PROFINANCE_FETCH_TIMEOUT", FETCH_TIMEOUT_SECONDS),
        refresh_interval_seconds=_env_float(
            "PROFINANCE_REFRESH_INTERVAL", REFRESH_INTERVAL_SECONDS
        ),
        log_level=(os.getenv("PROFINANCE_LOG_LEVEL") or "").strip() or None,
    )


__all__ = [
    "CACHE_KEY",
    "CACHE_TTL_SECONDS",
    "DEFAULT_SHEET_IDS",
    "EXPENSE_CATEGORIES",
    "REFRESH_INTERVAL_SECONDS",
    "Settings",
    "default_cache_dir",
    "load_settings",
]
