"""Wall-clock time sources and real-time timer backends.

The clock never reads the system time or arms timers directly. Both are
injected once at construction:

- A TimeSource supplies a non-decreasing millisecond reading.
- A TimerBackend arms one-shot callbacks after a millisecond delay and
  returns a cancellable handle.

Real usage pairs MonotonicTimeSource with AsyncioTimerBackend. Tests and
deterministic replays pair ManualTimeSource with ManualTimerBackend:

    source = ManualTimeSource()
    timers = ManualTimerBackend(source)
    timers.call_later(5, callback)
    timers.advance(5)  # moves the source to 5.0 and fires callback
"""

import asyncio
import heapq
import time
from typing import Any, Callable, Optional, Protocol


TimerCallback = Callable[[], Any]


class TimeSource(Protocol):
    """Provides the wall-clock reading the clock is calibrated against."""

    def now_ms(self) -> float:
        """Return a non-decreasing reading in milliseconds."""
        ...


class TimerHandle(Protocol):
    """A pending one-shot timer."""

    def cancel(self) -> None:
        """Prevent the timer from firing. Safe to call more than once."""
        ...


class TimerBackend(Protocol):
    """Arms one-shot real-time timers."""

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        """Run ``callback`` once after ``delay_ms`` milliseconds."""
        ...


class MonotonicTimeSource:
    """System monotonic clock in milliseconds."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0


class ManualTimeSource:
    """Caller-driven time source for deterministic runs.

    Args:
        start: Initial reading in milliseconds.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now_ms = float(start)

    def now_ms(self) -> float:
        return self._now_ms

    def advance(self, ms: float) -> float:
        """Move the reading forward by ``ms`` milliseconds.

        Raises:
            ValueError: If ms is negative.
        """
        if ms < 0:
            raise ValueError(f"Cannot advance time backwards: ms={ms}")
        self._now_ms += ms
        return self._now_ms

    def set(self, now_ms: float) -> float:
        """Set an absolute reading (forward only).

        Raises:
            ValueError: If now_ms is before the current reading.
        """
        if now_ms < self._now_ms:
            raise ValueError(f"Cannot set time backwards: {now_ms} < {self._now_ms}")
        self._now_ms = float(now_ms)
        return self._now_ms


class AsyncioTimerBackend:
    """Timers scheduled on an asyncio event loop.

    When no loop is given, the loop running at the moment a timer is armed
    is used. Arming a timer outside a running loop raises RuntimeError.

    Args:
        loop: Event loop to schedule on (defaults to the running loop).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay_ms: float, callback: TimerCallback) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0.0) / 1000.0, callback)


class ManualTimer:
    """Handle for a timer armed on a ManualTimerBackend."""

    __slots__ = ("due_ms", "callback", "cancelled", "_on_cancel")

    def __init__(
        self,
        due_ms: float,
        callback: TimerCallback,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self._on_cancel = on_cancel

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()


class ManualTimerBackend:
    """Deterministic timer backend driven by a ManualTimeSource.

    Timers live in a min-heap ordered by due time, with a sequence counter
    keeping FIFO order for timers due at the same instant. Nothing fires
    until ``advance()`` or ``run_due()`` is called.

    Cancelled timers stay in the heap until they reach the top, or until
    they outnumber the live ones, at which point the heap is rebuilt.

    Args:
        time_source: The manual source this backend advances.
    """

    def __init__(self, time_source: ManualTimeSource) -> None:
        self.time_source = time_source
        self._heap: list[tuple[float, int, ManualTimer]] = []
        self._sequence = 0
        self._cancelled = 0

    @property
    def pending_count(self) -> int:
        """Number of armed, uncancelled timers."""
        return len(self._heap) - self._cancelled

    @property
    def queued_count(self) -> int:
        """Number of heap entries, including cancelled ones not yet discarded."""
        return len(self._heap)

    def call_later(self, delay_ms: float, callback: TimerCallback) -> ManualTimer:
        timer = ManualTimer(
            self.time_source.now_ms() + max(delay_ms, 0.0),
            callback,
            on_cancel=self._note_cancelled,
        )
        self._sequence += 1
        heapq.heappush(self._heap, (timer.due_ms, self._sequence, timer))
        if self._cancelled > len(self._heap) - self._cancelled:
            self._compact()
        return timer

    def next_due_ms(self) -> Optional[float]:
        """Due time of the earliest live timer, or None if nothing is armed."""
        self._drop_cancelled()
        if not self._heap:
            return None
        return self._heap[0][0]

    def run_due(self) -> int:
        """Fire every live timer due at or before the current reading.

        Returns:
            Number of callbacks invoked.
        """
        return self._fire_until(self.time_source.now_ms())

    def advance(self, ms: float) -> int:
        """Advance the time source by ``ms``, firing timers along the way.

        The source is stepped to each timer's due instant before its
        callback runs, so callbacks observe the exact instant they were
        armed for. Timers armed by a callback fire too if they fall due
        within the window.

        Returns:
            Number of callbacks invoked.
        """
        if ms < 0:
            raise ValueError(f"Cannot advance time backwards: ms={ms}")
        target = self.time_source.now_ms() + ms
        fired = self._fire_until(target)
        self.time_source.set(target)
        return fired

    def _fire_until(self, target_ms: float) -> int:
        fired = 0
        while True:
            due = self.next_due_ms()
            if due is None or due > target_ms:
                return fired
            _, _, timer = heapq.heappop(self._heap)
            if due > self.time_source.now_ms():
                self.time_source.set(due)
            # Out of the heap, so a later cancel() must not be counted
            timer.cancelled = True
            timer.callback()
            fired += 1

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)
            self._cancelled -= 1

    def _note_cancelled(self) -> None:
        self._cancelled += 1

    def _compact(self) -> None:
        self._heap = [entry for entry in self._heap if not entry[2].cancelled]
        heapq.heapify(self._heap)
        self._cancelled = 0
