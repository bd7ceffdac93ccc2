"""Periodic refresh bound to view visibility.

The scheduler keeps at most one pending :class:`threading.Timer`. Each tick
runs the refresh callback and re-arms the timer while the view is visible.
Hiding the view cancels the pending tick; showing it again re-arms the timer
and, when the last refresh did not end ``connected``, refreshes immediately.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from .config import REFRESH_INTERVAL_SECONDS
from .logging_setup import get_logger
from .models import SourceState

_logger = get_logger("profinance.refresh")

type RefreshCallback = Callable[[], SourceState | None]
type TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class RefreshScheduler:
    """Fire ``callback`` every ``interval`` seconds while visible.

    ``callback`` may return the resulting :class:`SourceState`; it is kept as
    :attr:`last_state` and decides whether becoming visible triggers an
    immediate refresh. Exceptions from ``callback`` are logged and the
    schedule continues.
    """

    def __init__(
        self,
        callback: RefreshCallback,
        interval: float = REFRESH_INTERVAL_SECONDS,
        *,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._callback = callback
        self._interval = float(interval)
        self._timer_factory = timer_factory
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self._running = False
        self._visible = True
        self.last_state: SourceState | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._running

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _arm(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self._interval, self._tick)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _disarm(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def refresh_now(self) -> SourceState | None:
        """Run the callback once, outside the timer schedule."""

        try:
            state = self._callback()
        except Exception:
            _logger.error("refresh:callback_failed", exc_info=True)
            state = SourceState.ERROR
        if state is not None:
            self.last_state = SourceState(state)
        _logger.debug("refresh:done state=%s", self.last_state)
        return self.last_state

    def _tick(self) -> None:
        with self._lock:
            self._timer = None
        if not (self._running and self._visible):
            return
        self.refresh_now()
        if self._running and self._visible:
            self._arm()

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        _logger.info("refresh:start interval_s=%.0f", self._interval)
        if self._visible:
            self._arm()

    def cancel(self) -> None:
        self._running = False
        self._disarm()
        _logger.info("refresh:cancelled")

    def set_visible(self, visible: bool) -> None:
        """Track view visibility; showing a disconnected view refreshes at once."""

        was_visible = self._visible
        self._visible = visible
        if not self._running or visible == was_visible:
            return
        if not visible:
            self._disarm()
            return
        if self.last_state is not SourceState.CONNECTED:
            self.refresh_now()
        self._arm()


__all__ = ["RefreshCallback", "RefreshScheduler", "TimerFactory"]
