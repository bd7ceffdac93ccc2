"""Test doubles for the network, the clock and timers.

``FakeOpener`` stands in for :func:`profinance.fetcher.urllib_opener`: it maps
URL substrings to canned responses (or exceptions) and records every call.
``FakeClock`` is a settable UTC clock for TTL tests. ``FakeTimer`` mimics the
slice of :class:`threading.Timer` the refresh scheduler uses, without threads;
tests fire it by hand.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from typing import Any

from profinance.fetcher import HttpResponse


class FakeOpener:
    """Opener returning canned responses keyed by URL fragment.

    ``routes`` maps a substring (e.g. ``"/pub?"``) to either an
    :class:`HttpResponse` or an exception instance to raise. The first
    matching route wins; URLs with no route raise ``OSError``.
    """

    def __init__(self, routes: dict[str, HttpResponse | BaseException] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, float]] = []

    def __call__(self, url: str, timeout: float) -> HttpResponse:
        self.calls.append((url, timeout))
        for fragment, outcome in self.routes.items():
            if fragment in url:
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
        raise OSError(f"no route for {url}")

    @property
    def urls(self) -> list[str]:
        return [u for u, _ in self.calls]


def ok(body: str) -> HttpResponse:
    return HttpResponse(status=200, reason="OK", body=body)


def status(code: int, reason: str = "") -> HttpResponse:
    return HttpResponse(status=code, reason=reason, body="")


class FakeClock:
    def __init__(self, start: dt.datetime | None = None) -> None:
        self.now = start or dt.datetime(2024, 12, 19, 12, 0, tzinfo=dt.UTC)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + dt.timedelta(seconds=seconds)


class FakeTimer:
    """Non-threaded stand-in for ``threading.Timer``."""

    def __init__(self, interval: float, function: Callable[[], Any]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.finished = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.started and not self.cancelled and not self.finished:
            self.finished = True
            self.function()


class TimerFactory:
    """Callable producing :class:`FakeTimer` objects and remembering them."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], Any]) -> FakeTimer:
        t = FakeTimer(interval, function)
        self.timers.append(t)
        return t

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.started and not (t.cancelled or t.finished)]
