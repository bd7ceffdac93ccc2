"""Pytest configuration for test isolation.

The cache store persists the last aggregate under a default project-relative
directory (``./.cache``). When tests run in the same working tree, a cache
written by one test would be served to the next one as a "cache hit" and skip
the stubbed fetch paths, which makes assertions about states and sources
flaky.

To keep tests hermetic, we redirect the cache root to a unique temporary
directory for each test via an autouse fixture, and undo any logging setup a
CLI test performed so ``caplog`` keeps seeing package records.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
# Ensure `packages/` precedes the repo root on sys.path so local packages resolve first.
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]


@pytest.fixture(autouse=True)
def _isolate_cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Force a per-test cache root so tests don't share on-disk state.

    The application reads ``PROFINANCE_CACHE_DIR`` (when set) to override the
    default ``./.cache`` location. We point it at the test's own temporary
    directory.
    """

    cache_root = tmp_path / "cache"
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("PROFINANCE_CACHE_DIR", os.fspath(cache_root))


@pytest.fixture(autouse=True)
def _reset_package_logging():
    yield
    import profinance.logging_setup as logging_setup

    logger = logging.getLogger("profinance")
    for h in list(logger.handlers):
        if not isinstance(h, logging.NullHandler):
            logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    logging_setup._handler = None
