from __future__ import annotations

import pytest

from wordwarrior.engine.scheduler import Scheduler


def test_timers_fire_in_due_order() -> None:
    sched = Scheduler()
    fired: list[str] = []
    sched.schedule(300, lambda: fired.append("late"), "late")
    sched.schedule(100, lambda: fired.append("early"), "early")
    sched.schedule(100, lambda: fired.append("early-2"), "early-2")

    assert sched.advance(99) == 0
    assert sched.advance(1) == 2
    assert fired == ["early", "early-2"]
    assert sched.pending() == ["late"]

    sched.advance(500)
    assert fired == ["early", "early-2", "late"]
    assert sched.now_ms == 600


def test_interval_timer_repeats_until_cancelled() -> None:
    sched = Scheduler()
    ticks: list[int] = []
    handle = sched.schedule_interval(100, lambda: ticks.append(sched.now_ms), "tick")

    sched.advance(350)
    assert ticks == [100, 200, 300]
    assert sched.next_due_ms() == 400

    sched.cancel(handle)
    sched.advance(1000)
    assert ticks == [100, 200, 300]
    assert sched.next_due_ms() is None


def test_callback_can_schedule_and_cancel() -> None:
    sched = Scheduler()
    seen: list[str] = []
    handle: list[int] = []

    def stop() -> None:
        seen.append("stop")
        sched.cancel(handle[0])

    handle.append(sched.schedule_interval(50, lambda: seen.append("tick"), "tick"))
    sched.schedule(120, stop, "stop")
    sched.schedule(0, lambda: sched.schedule(10, lambda: seen.append("chained"), "chained"))

    sched.advance(500)
    assert seen == ["chained", "tick", "tick", "stop"]


def test_paused_clock_does_not_move() -> None:
    sched = Scheduler()
    fired: list[int] = []
    sched.schedule(100, lambda: fired.append(1))

    sched.pause()
    assert sched.advance(1000) == 0
    assert sched.now_ms == 0
    assert fired == []

    sched.resume()
    sched.advance(100)
    assert fired == [1]


def test_pausing_inside_a_callback_stops_the_clock() -> None:
    sched = Scheduler()
    fired: list[str] = []

    def pause_now() -> None:
        fired.append("pause")
        sched.pause()

    sched.schedule(100, pause_now)
    sched.schedule(200, lambda: fired.append("after"))

    sched.advance(1000)
    assert fired == ["pause"]
    assert sched.now_ms == 100

    sched.resume()
    sched.advance(100)
    assert fired == ["pause", "after"]


def test_clear_and_invalid_interval() -> None:
    sched = Scheduler()
    sched.schedule(10, lambda: None, "a")
    sched.schedule_interval(10, lambda: None, "b")
    sched.clear()
    assert sched.pending() == []
    assert sched.advance(100) == 0

    with pytest.raises(ValueError):
        sched.schedule_interval(0, lambda: None)
