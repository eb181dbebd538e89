"""Public virtual clock facade."""

import logging
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from virtual_clock.config import ClockConfig
from virtual_clock.events import ClockEvent, EventCallback, EventEmitter
from virtual_clock.scheduler import ListenerScheduler, TimeCallback, TimeListener
from virtual_clock.time_model import TimeModel
from virtual_clock.timers import (
    AsyncioTimerBackend,
    MonotonicTimeSource,
    TimerBackend,
    TimeSource,
)

logger = logging.getLogger(__name__)


class ClockSnapshot(BaseModel):
    """Point-in-time view of a clock's state.

    Args:
        time: Virtual time when the snapshot was taken.
        running: Whether the clock was running.
        rate: Virtual time units per wall-clock millisecond.
        minimum: Lower bound on virtual time.
        maximum: Upper bound on virtual time.
        loop: Whether time wraps around at the bounds.
        listener_count: Number of registered time listeners.
    """

    model_config = ConfigDict(frozen=True)

    time: float = Field(description="Virtual time when the snapshot was taken")
    running: bool = Field(description="Whether the clock was running")
    rate: float = Field(description="Virtual time units per wall-clock millisecond")
    minimum: float = Field(description="Lower bound on virtual time")
    maximum: float = Field(description="Upper bound on virtual time")
    loop: bool = Field(description="Whether time wraps around at the bounds")
    listener_count: int = Field(description="Number of registered time listeners")


class VirtualClock:
    """A controllable clock whose time advances relative to the wall clock.

    The clock starts stopped at time 0 with rate 1, no bounds and looping
    off. Once started, virtual time advances by ``rate`` units per
    wall-clock millisecond. The rate may be negative (time runs backward)
    or zero (frozen while still running). Time is clamped to
    [minimum, maximum], or wraps within [minimum, maximum) when looping
    with both bounds finite.

    Every configuration change follows the same order:
    1. Apply the change to the time model (continuously, except ``time``)
    2. Reschedule every time listener against the new model
    3. Trigger the matching event

    So event listeners always observe consistent scheduling state. If step 2
    fails, the model change is rolled back and no event is triggered.

    Time listeners (``once_at`` / ``always_at``) fire when virtual time
    reaches their target. They are driven by real-time timers from the
    timer backend, which defaults to the running asyncio event loop.

    Args:
        time_source: Wall-clock reader (defaults to the monotonic clock).
        timers: Real-time timer backend (defaults to asyncio).
        config: Tuning parameters (defaults to ClockConfig()).

    Example:
        clock = VirtualClock()
        clock.maximum = 10
        clock.loop = True
        clock.minimum = 0
        clock.rate = 2
        clock.always_at(5, on_halfway).start()
    """

    def __init__(
        self,
        time_source: Optional[TimeSource] = None,
        timers: Optional[TimerBackend] = None,
        config: Optional[ClockConfig] = None,
    ) -> None:
        self.config = config or ClockConfig()
        self._model = TimeModel(time_source=time_source or MonotonicTimeSource())
        self._scheduler = ListenerScheduler(
            self._model, timers or AsyncioTimerBackend(), self.config
        )
        self._events = EventEmitter()

    # ===== Lifecycle =====

    def start(self) -> "VirtualClock":
        """Start running the clock. Does nothing when already running.

        Triggers ``start`` if the clock was stopped, then always ``setrunning``.
        """
        previous = self._model.model_dump()
        if self._model.start():
            self._reschedule(previous)
            logger.info(f"Clock started at {self._model.reference_time}")
            self.trigger(ClockEvent.START)
        self.trigger(ClockEvent.SET_RUNNING)
        return self

    def stop(self) -> "VirtualClock":
        """Stop running the clock. Does nothing when already stopped.

        Triggers ``stop`` if the clock was running, then always ``setrunning``.
        """
        previous = self._model.model_dump()
        if self._model.stop():
            self._reschedule(previous)
            logger.info(f"Clock stopped at {self._model.reference_time}")
            self.trigger(ClockEvent.STOP)
        self.trigger(ClockEvent.SET_RUNNING)
        return self

    def close(self) -> None:
        """Cancel every pending timer and drop all time listeners.

        Event listeners stay attached and the clock keeps its state.
        """
        self._scheduler.clear()

    # ===== Event listeners =====

    def on(self, event: Union[ClockEvent, str], callback: EventCallback) -> "VirtualClock":
        """Attach an event listener.

        Supported events: start, stop, settime, setrunning, setrate,
        setminimum, setmaximum, setloop.

        Raises:
            UnknownEventError: If the event name is not supported.
        """
        self._events.on(event, callback)
        return self

    def off(self, event: Union[ClockEvent, str], callback: EventCallback) -> "VirtualClock":
        """Detach a previously attached event listener.

        Raises:
            EventListenerNotFoundError: If the listener is not attached.
        """
        self._events.off(event, callback)
        return self

    def trigger(self, event: Union[ClockEvent, str], *args: Any) -> "VirtualClock":
        """Invoke the listeners attached to an event."""
        self._events.trigger(event, *args)
        return self

    # ===== Time listeners =====

    def once_at(self, time: float, callback: TimeCallback) -> "VirtualClock":
        """Call ``callback`` once, the first time the clock reaches ``time``."""
        self._scheduler.register(time, callback, once=True)
        return self

    def always_at(self, time: float, callback: TimeCallback) -> "VirtualClock":
        """Call ``callback`` every time the clock reaches ``time``."""
        self._scheduler.register(time, callback, once=False)
        return self

    def remove_at(self, time: float, callback: TimeCallback) -> "VirtualClock":
        """Detach every time listener registered for (time, callback).

        Unlike ``off()``, removing a listener that does not exist is a no-op.
        """
        self._scheduler.unregister(time, callback)
        return self

    @property
    def time_listeners(self) -> tuple[TimeListener, ...]:
        """Registered time listeners."""
        return self._scheduler.listeners

    # ===== State =====

    @property
    def time(self) -> float:
        """The current clock time."""
        return self._model.current_time()

    @time.setter
    def time(self, time: float) -> None:
        """Jump to a time, clamped to [minimum, maximum]."""
        previous = self._model.model_dump()
        self._model.set_time(time)
        self._reschedule(previous)
        self.trigger(ClockEvent.SET_TIME)

    @property
    def running(self) -> bool:
        """Whether the clock is currently running."""
        return self._model.running

    @running.setter
    def running(self, running: bool) -> None:
        if running:
            self.start()
        else:
            self.stop()

    @property
    def rate(self) -> float:
        """The rate (relative to real time) the clock runs at."""
        return self._model.rate

    @rate.setter
    def rate(self, rate: float) -> None:
        previous = self._model.model_dump()
        self._model.set_rate(rate)
        self._reschedule(previous)
        self.trigger(ClockEvent.SET_RATE)

    @property
    def minimum(self) -> float:
        """The minimum limit for time on the clock."""
        return self._model.minimum

    @minimum.setter
    def minimum(self, minimum: float) -> None:
        previous = self._model.model_dump()
        self._model.set_minimum(minimum)
        self._reschedule(previous)
        self.trigger(ClockEvent.SET_MINIMUM)

    @property
    def maximum(self) -> float:
        """The maximum limit for time on the clock."""
        return self._model.maximum

    @maximum.setter
    def maximum(self, maximum: float) -> None:
        previous = self._model.model_dump()
        self._model.set_maximum(maximum)
        self._reschedule(previous)
        self.trigger(ClockEvent.SET_MAXIMUM)

    @property
    def loop(self) -> bool:
        """Whether the clock loops around after reaching the maximum."""
        return self._model.loop

    @loop.setter
    def loop(self, loop: bool) -> None:
        previous = self._model.model_dump()
        self._model.set_loop(loop)
        self._reschedule(previous)
        self.trigger(ClockEvent.SET_LOOP)

    def _reschedule(self, previous: dict[str, Any]) -> None:
        """Recompute every time listener after a model change.

        If a timer cannot be armed (e.g. the asyncio backend outside a
        running loop), the model is put back to ``previous`` and the
        listeners are rescheduled against it before the error propagates,
        so a failed change is never announced and leaves no trace.
        """
        try:
            self._scheduler.recompute_all()
        except Exception:
            logger.warning("Rescheduling time listeners failed; restoring clock state")
            self._model.restore(previous)
            self._scheduler.recompute_all()
            raise

    def snapshot(self) -> ClockSnapshot:
        """Capture the clock's current state."""
        return ClockSnapshot(
            time=self.time,
            running=self.running,
            rate=self.rate,
            minimum=self.minimum,
            maximum=self.maximum,
            loop=self.loop,
            listener_count=len(self._scheduler.listeners),
        )

    def __repr__(self) -> str:
        return (
            f"VirtualClock(time={self.time}, running={self.running}, "
            f"rate={self.rate}, minimum={self.minimum}, maximum={self.maximum}, "
            f"loop={self.loop})"
        )
