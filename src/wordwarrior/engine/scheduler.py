from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

Callback = Callable[[], None]


@dataclass(order=True)
class _Timer:
    due_ms: int
    seq: int
    handle: int = field(compare=False)
    label: str = field(compare=False)
    callback: Callback = field(compare=False)
    interval_ms: int | None = field(default=None, compare=False)


class Scheduler:
    """Virtual-clock timer queue.

    Nothing happens until `advance` is called, so phase pacing can be
    stepped by hand in tests. Timers due at the same instant fire in the
    order they were scheduled. While paused the clock does not move.
    """

    def __init__(self) -> None:
        self.now_ms = 0
        self.paused = False
        self._queue: list[_Timer] = []
        self._active: dict[int, _Timer] = {}
        self._seq = 0

    def _push(self, delay_ms: int, callback: Callback, label: str, interval_ms: int | None) -> int:
        self._seq += 1
        timer = _Timer(
            due_ms=self.now_ms + max(0, delay_ms),
            seq=self._seq,
            handle=self._seq,
            label=label,
            callback=callback,
            interval_ms=interval_ms,
        )
        heapq.heappush(self._queue, timer)
        self._active[timer.handle] = timer
        return timer.handle

    def schedule(self, delay_ms: int, callback: Callback, label: str = "") -> int:
        return self._push(delay_ms, callback, label, None)

    def schedule_interval(self, interval_ms: int, callback: Callback, label: str = "") -> int:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        return self._push(interval_ms, callback, label, interval_ms)

    def cancel(self, handle: int | None) -> None:
        if handle is not None:
            self._active.pop(handle, None)

    def clear(self) -> None:
        self._queue.clear()
        self._active.clear()

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def pending(self, label: str | None = None) -> list[str]:
        timers = sorted(self._active.values())
        return [t.label for t in timers if label is None or t.label == label]

    def next_due_ms(self) -> int | None:
        self._drop_cancelled()
        return self._queue[0].due_ms if self._queue else None

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0].handle not in self._active:
            heapq.heappop(self._queue)

    def advance(self, ms: int) -> int:
        """Move the clock forward, firing due timers in order.

        Returns how many callbacks ran. Pausing from inside a callback
        stops the clock at that callback's due time.
        """
        if self.paused:
            return 0
        target = self.now_ms + max(0, ms)
        fired = 0
        while True:
            self._drop_cancelled()
            if not self._queue or self._queue[0].due_ms > target:
                break
            timer = heapq.heappop(self._queue)
            self.now_ms = timer.due_ms
            if timer.interval_ms is not None:
                timer.due_ms += timer.interval_ms
                self._seq += 1
                timer.seq = self._seq
                heapq.heappush(self._queue, timer)
            else:
                self._active.pop(timer.handle, None)
            logger.trace("timer fired: {} @ {}ms", timer.label, self.now_ms)
            timer.callback()
            fired += 1
            if self.paused:
                return fired
        self.now_ms = target
        return fired
