import pytest

from profinance.models import SourceState
from profinance.refresh import RefreshScheduler
from tests.helpers.fakes import TimerFactory


def _scheduler(states):
    calls = []

    def _refresh():
        calls.append(len(calls))
        return states[min(len(calls) - 1, len(states) - 1)]

    timers = TimerFactory()
    sched = RefreshScheduler(_refresh, interval=300, timer_factory=timers)
    return sched, timers, calls


def test_ticks_refresh_and_rearm():
    sched, timers, calls = _scheduler([SourceState.CONNECTED])

    sched.start()
    assert calls == []
    assert timers.last.interval == 300
    assert timers.last.daemon is True

    timers.last.fire()
    assert calls == [0]
    assert sched.last_state is SourceState.CONNECTED
    assert len(timers.live) == 1

    timers.last.fire()
    assert calls == [0, 1]


def test_start_twice_keeps_one_timer():
    sched, timers, _ = _scheduler([SourceState.CONNECTED])
    sched.start()
    sched.start()
    assert len(timers.live) == 1


def test_hidden_view_cancels_and_visible_rearms():
    sched, timers, calls = _scheduler([SourceState.CONNECTED])
    sched.start()
    timers.last.fire()

    sched.set_visible(False)
    assert timers.live == []
    assert not sched.pending

    # Connected last time: showing again only re-arms.
    sched.set_visible(True)
    assert calls == [0]
    assert len(timers.live) == 1


def test_showing_a_disconnected_view_refreshes_immediately():
    sched, timers, calls = _scheduler([SourceState.OFFLINE, SourceState.CONNECTED])
    sched.start()
    timers.last.fire()
    assert sched.last_state is SourceState.OFFLINE

    sched.set_visible(False)
    sched.set_visible(True)

    assert calls == [0, 1]
    assert sched.last_state is SourceState.CONNECTED
    assert len(timers.live) == 1


def test_cancel_stops_everything():
    sched, timers, calls = _scheduler([SourceState.CONNECTED])
    sched.start()
    first = timers.last

    sched.cancel()
    first.fire()

    assert calls == []
    assert timers.live == []
    assert not sched.running
    # Visibility changes while stopped do nothing.
    sched.set_visible(False)
    sched.set_visible(True)
    assert calls == []


def test_callback_failure_is_recorded_as_error():
    timers = TimerFactory()

    def _boom():
        raise RuntimeError("network down")

    sched = RefreshScheduler(_boom, interval=60, timer_factory=timers)
    sched.start()
    timers.last.fire()

    assert sched.last_state is SourceState.ERROR
    assert len(timers.live) == 1


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        RefreshScheduler(lambda: None, interval=0)
