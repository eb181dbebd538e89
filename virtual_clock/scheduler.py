"""Time listener registry and real-time timer scheduling.

A time listener asks for a callback when the virtual clock reaches a
target instant. Because virtual time is derived from the wall clock, each
listener is driven by a real-time timer whose delay is the virtual distance
to the target divided by the rate:

    delay_ms = ceil(distance_in_direction_of_travel / abs(rate))

The delay is only valid for the configuration it was computed under, so
the owning clock calls ``recompute_all()`` after every change to the time
model, and each listener recomputes itself after it fires.

Listeners are stored by id and every timer callback looks its listener up
again when it runs. A callback may change the clock (stop it, move it,
remove listeners) while its own timer is firing; the fresh lookup is what
keeps a stale timer from acting on a listener that is gone or was
rescheduled.
"""

import logging
import math
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from virtual_clock.config import ClockConfig
from virtual_clock.exceptions import ClockRangeError
from virtual_clock.time_model import TimeModel
from virtual_clock.timers import TimerBackend, TimerHandle

logger = logging.getLogger(__name__)

TimeCallback = Callable[[], Any]


class TimeListener(BaseModel):
    """A callback registered for a virtual time instant.

    Instances double as registration handles: pass one to
    ``ListenerScheduler.remove()`` to drop exactly that registration.

    Args:
        listener_id: Unique registration id.
        time: Virtual time the callback is attached to.
        callback: Zero-argument callable invoked when time reaches ``time``.
        once: Whether the listener is removed after its first firing.
        last_fired: Virtual time observed at the last firing (None if never).
        fire_count: Number of times the callback has been invoked.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    listener_id: int = Field(description="Unique registration id")
    time: float = Field(description="Virtual time the callback is attached to")
    callback: TimeCallback = Field(description="Callable invoked at the target time")
    once: bool = Field(default=False, description="Remove after the first firing")
    last_fired: Optional[float] = Field(
        default=None, description="Virtual time observed at the last firing"
    )
    fire_count: int = Field(default=0, description="Number of firings so far")

    _timer: Optional[TimerHandle] = PrivateAttr(default=None)

    @property
    def is_scheduled(self) -> bool:
        """Whether a real-time timer is currently armed for this listener."""
        return self._timer is not None

    def cancel_timer(self) -> None:
        """Cancel the pending real-time timer, if any."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class ListenerScheduler:
    """Keeps one real-time timer per time listener in step with a TimeModel.

    Args:
        model: The time model listeners are scheduled against.
        timers: Backend used to arm real-time timers.
        config: Retry delay and callback error policy.
    """

    def __init__(
        self,
        model: TimeModel,
        timers: TimerBackend,
        config: Optional[ClockConfig] = None,
    ) -> None:
        self._model = model
        self._timers = timers
        self._config = config or ClockConfig()
        self._listeners: dict[int, TimeListener] = {}
        self._next_id = 1

    @property
    def listeners(self) -> tuple[TimeListener, ...]:
        """All live listeners in registration order."""
        return tuple(self._listeners.values())

    @property
    def pending_count(self) -> int:
        """Number of listeners with an armed real-time timer."""
        return sum(1 for listener in self._listeners.values() if listener.is_scheduled)

    def get(self, listener_id: int) -> Optional[TimeListener]:
        """Look up a live listener by id."""
        return self._listeners.get(listener_id)

    def register(self, time: float, callback: TimeCallback, once: bool) -> TimeListener:
        """Register a callback for a virtual time and schedule it.

        Registering the same (time, callback) pair twice creates two
        independent listeners.

        Args:
            time: Virtual time to fire at.
            callback: Zero-argument callable.
            once: Remove the listener after it fires once.

        Returns:
            The new listener, usable as a removal handle.

        Raises:
            ClockRangeError: If time is NaN.
        """
        if math.isnan(time):
            raise ClockRangeError("Listener time must be a number, got NaN", "time", time)

        listener = TimeListener(
            listener_id=self._next_id,
            time=time,
            callback=callback,
            once=once,
        )
        self._next_id += 1
        self._listeners[listener.listener_id] = listener

        logger.debug(
            f"Registered {'one-shot' if once else 'repeating'} listener "
            f"{listener.listener_id} at {time}"
        )
        self.recompute(listener.listener_id)
        return listener

    def unregister(self, time: float, callback: TimeCallback) -> int:
        """Remove every listener matching a (time, callback) pair.

        Matching nothing is not an error.

        Returns:
            Number of listeners removed.
        """
        matches = [
            listener_id
            for listener_id, listener in self._listeners.items()
            if listener.time == time and listener.callback == callback
        ]
        for listener_id in matches:
            self._discard(listener_id)
        return len(matches)

    def remove(self, listener: TimeListener) -> bool:
        """Remove one specific registration.

        Returns:
            True if the listener was live and has been removed.
        """
        if self._listeners.get(listener.listener_id) is not listener:
            return False
        self._discard(listener.listener_id)
        return True

    def clear(self) -> None:
        """Cancel every pending timer and drop every listener."""
        for listener in self._listeners.values():
            listener.cancel_timer()
        self._listeners.clear()

    def recompute_all(self) -> None:
        """Reschedule every listener against the current time model.

        Idempotent; safe to call redundantly.
        """
        for listener_id in tuple(self._listeners):
            self.recompute(listener_id)

    def recompute(self, listener_id: int) -> None:
        """Cancel and, if the target is reachable, re-arm a listener's timer."""
        listener = self._listeners.get(listener_id)
        if listener is None:
            return

        listener.cancel_timer()

        model = self._model
        if (
            not model.running
            or model.rate == 0
            or not model.minimum <= listener.time <= model.maximum
        ):
            return

        current_time = model.current_time()

        if current_time == listener.last_fired:
            # Already fired at this exact instant; wait for time to move on
            # unless it is pinned against a bound it cannot leave.
            if model.is_loopable or (
                current_time != model.minimum and current_time != model.maximum
            ):
                listener._timer = self._timers.call_later(
                    self._config.retry_delay_ms,
                    lambda: self.recompute(listener_id),
                )
            else:
                logger.debug(
                    f"Listener {listener_id} pinned at bound {current_time}; not rescheduled"
                )
            return

        if model.rate > 0:
            until = listener.time - current_time
        else:
            until = current_time - listener.time

        if until < 0:
            if not model.is_loopable:
                logger.debug(f"Listener {listener_id} at {listener.time} is behind; unreachable")
                return
            until += model.span

        # Infinite targets, or a rate too small for a float delay, are never reached
        delay = until / abs(model.rate)
        if math.isinf(delay):
            logger.debug(f"Listener {listener_id} at {listener.time} is out of reach")
            return

        # Never round down: a timer firing early would see time short of the target
        delay_ms = math.ceil(delay)
        listener._timer = self._timers.call_later(delay_ms, lambda: self._fire(listener_id))
        logger.debug(f"Listener {listener_id} at {listener.time} armed for {delay_ms}ms")

    def _fire(self, listener_id: int) -> None:
        listener = self._listeners.get(listener_id)
        if listener is None:
            return

        listener._timer = None
        listener.last_fired = self._model.current_time()
        listener.fire_count += 1

        try:
            listener.callback()
        except Exception:
            if not self._config.catch_callback_errors:
                raise
            logger.error(
                f"Time listener {listener_id} at {listener.time} raised",
                exc_info=True,
            )
        finally:
            # The callback may have removed or replaced this listener
            if self._listeners.get(listener_id) is listener:
                if listener.once:
                    self._discard(listener_id)
                else:
                    self.recompute(listener_id)

    def _discard(self, listener_id: int) -> None:
        listener = self._listeners.pop(listener_id, None)
        if listener is not None:
            listener.cancel_timer()
            logger.debug(f"Removed listener {listener_id} at {listener.time}")
