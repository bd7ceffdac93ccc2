"""Logging for the ``profinance`` package.

Library modules log through :func:`get_logger` under the ``profinance``
logger, which carries a ``NullHandler`` so nothing is printed until an
entrypoint calls :func:`configure_logging`. The CLI does that in its root
callback with ``--log-level`` or :attr:`Settings.log_level
<profinance.config.Settings.log_level>` (``PROFINANCE_LOG_LEVEL``).

Pipeline messages are ``event key=value`` pairs (``pipeline:cache_hit
kind=expenses records=12``), so the default format puts the logger name
first and keeps the message last.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

PACKAGE_LOGGER = "profinance"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_package = logging.getLogger(PACKAGE_LOGGER)
_package.addHandler(logging.NullHandler())

# The stream handler installed by configure_logging, if any.
_handler: logging.Handler | None = None


def resolve_level(level: int | str | None) -> int:
    """Level number for ``level``; ``None`` or blank means ``INFO``.

    Accepts numbers, numeric strings and level names in any case. Raises
    ``ValueError`` for an unknown name.
    """

    if isinstance(level, int):
        return level
    name = (level or "").strip().upper()
    if not name:
        return logging.INFO
    if name.isdigit():
        return int(name)
    value = logging.getLevelNamesMapping().get(name)
    if value is None:
        raise ValueError(f"unknown log level {level!r}")
    return value


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str = DEFAULT_FORMAT,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Send package records to ``stream`` (stderr by default) at ``level``.

    The first call installs one ``StreamHandler`` and stops propagation to the
    root logger. Later calls only change the level, so an entrypoint and a
    host application can both call it without duplicating output.
    """

    global _handler
    resolved = resolve_level(level)
    if _handler is None:
        _handler = logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(logging.Formatter(fmt))
        _package.addHandler(_handler)
        _package.propagate = False
    _handler.setLevel(resolved)
    _package.setLevel(resolved)
    return _handler


def get_logger(name: str) -> logging.Logger:
    """Logger under the package: ``"cache"`` and ``"profinance.cache"`` are the same."""

    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = ["DEFAULT_FORMAT", "PACKAGE_LOGGER", "configure_logging", "get_logger", "resolve_level"]
