"""Virtual time calibration model."""

import logging
import math
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)

from virtual_clock.exceptions import ClockRangeError
from virtual_clock.timers import MonotonicTimeSource, TimeSource

logger = logging.getLogger(__name__)


class TimeModel(BaseModel):
    """Maps wall-clock readings to virtual time.

    Virtual time is never stored as a running value. The model keeps a
    calibration point (a virtual time paired with the wall-clock reading
    taken when it was recorded) and derives the current virtual time from
    it on demand:

        t = reference_time + rate * (now_ms - reference_wall_time)

    then wraps t into [minimum, maximum) when looping with finite bounds, or
    clamps it to [minimum, maximum] otherwise.

    Every setter that changes how t is computed re-calibrates at the
    currently displayed time first, so rate, bound, loop and start/stop
    transitions never make time jump. ``set_time()`` is the only deliberate
    discontinuity.

    This class only holds and computes state. Listener rescheduling and
    event emission are the VirtualClock's job.

    Args:
        reference_time: Virtual time at the last calibration point.
        reference_wall_time: Wall-clock reading (ms) at the last calibration point.
        running: Whether virtual time is advancing.
        rate: Virtual time units per wall-clock millisecond (may be negative or zero).
        minimum: Lower bound on virtual time (may be -inf).
        maximum: Upper bound on virtual time (may be +inf).
        loop: Whether time wraps around instead of clamping at the bounds.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    reference_time: float = Field(
        default=0.0, description="Virtual time at the last calibration point"
    )
    reference_wall_time: float = Field(
        default=0.0,
        description="Wall-clock reading (ms) at the last calibration point",
    )
    running: bool = Field(default=False, description="Whether virtual time is advancing")
    rate: float = Field(
        default=1.0, description="Virtual time units per wall-clock millisecond"
    )
    minimum: float = Field(default=-math.inf, description="Lower bound on virtual time")
    maximum: float = Field(default=math.inf, description="Upper bound on virtual time")
    loop: bool = Field(
        default=False, description="Whether time wraps around at the bounds"
    )

    _time_source: TimeSource = PrivateAttr(default_factory=MonotonicTimeSource)

    def __init__(self, time_source: Optional[TimeSource] = None, **data):
        """Initialize and take the first wall-clock reading.

        Args:
            time_source: Wall-clock reader (defaults to the monotonic clock).
            **data: Field values.
        """
        super().__init__(**data)
        if time_source is not None:
            self._time_source = time_source
        if "reference_wall_time" not in data:
            self.reference_wall_time = self._time_source.now_ms()

    @field_validator("reference_time", "rate", "minimum", "maximum")
    @classmethod
    def validate_not_nan(cls, v: float) -> float:
        """Reject NaN, which would poison every later computation."""
        if math.isnan(v):
            raise ValueError("Value must be a number, got NaN")
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "TimeModel":
        """Ensure the bounds form a non-empty window."""
        if self.minimum > self.maximum:
            raise ValueError(
                f"minimum ({self.minimum}) must not exceed maximum ({self.maximum})"
            )
        if self.minimum == math.inf or self.maximum == -math.inf:
            raise ValueError("Bounds must leave room for a finite time")
        return self

    @property
    def is_loopable(self) -> bool:
        """Whether time currently wraps (loop enabled and both bounds finite)."""
        return self.loop and self.minimum > -math.inf and self.maximum < math.inf

    @property
    def span(self) -> float:
        """Length of the [minimum, maximum] window."""
        return self.maximum - self.minimum

    def now_ms(self) -> float:
        """Current wall-clock reading from the injected time source."""
        return self._time_source.now_ms()

    def current_time(self) -> float:
        """Compute the virtual time displayed right now.

        Returns:
            Virtual time inside [minimum, maximum], or inside
            [minimum, maximum) while looping with finite bounds.
        """
        current = self.reference_time
        if self.running:
            current += self.rate * (self.now_ms() - self.reference_wall_time)

        if self.is_loopable:
            return self.fold(current)
        return self.clamp(current)

    def clamp(self, value: float) -> float:
        """Limit a value to [minimum, maximum]."""
        return min(max(self.minimum, value), self.maximum)

    def fold(self, value: float) -> float:
        """Wrap a value into [minimum, maximum) by whole loop spans.

        A zero-length span has nowhere to wrap to and always yields minimum.
        """
        span = self.span
        if span <= 0:
            return self.minimum
        if self.minimum <= value < self.maximum:
            return value
        # Window starting at zero
        if self.minimum == 0:
            folded = value % self.maximum
        else:
            folded = self.minimum + (value - self.minimum) % span
        # Float modulo of a tiny negative offset can land exactly on the span
        if folded >= self.maximum:
            return self.minimum
        return folded

    def calibrate(self, virtual_time: float) -> None:
        """Record a new calibration point at the given virtual time.

        The time is clamped to the bounds and paired with a fresh
        wall-clock reading.
        """
        self.reference_time = self.clamp(virtual_time)
        self.reference_wall_time = self.now_ms()

    def restore(self, state: dict[str, Any]) -> None:
        """Put back fields captured earlier with ``model_dump()``.

        The values are assumed to come from this model, so they are
        assigned without re-validation.
        """
        for name, value in state.items():
            setattr(self, name, value)
        logger.debug(f"Time model restored to {self.reference_time}")

    def start(self) -> bool:
        """Start advancing time.

        Returns:
            True if the model was stopped and is now running, False if it
            was already running.
        """
        if self.running:
            return False
        self.calibrate(self.current_time())
        self.running = True
        logger.debug(f"Time model started at {self.reference_time}")
        return True

    def stop(self) -> bool:
        """Freeze time at its currently displayed value.

        Returns:
            True if the model was running and is now stopped, False if it
            was already stopped.
        """
        if not self.running:
            return False
        self.reference_time = self.current_time()
        self.running = False
        logger.debug(f"Time model stopped at {self.reference_time}")
        return True

    def set_rate(self, rate: float) -> None:
        """Change the rate without making the displayed time jump.

        Raises:
            ClockRangeError: If rate is NaN.
        """
        if math.isnan(rate):
            raise ClockRangeError("Rate must be a number, got NaN", "rate", rate)
        if self.running:
            self.calibrate(self.current_time())
        self.rate = rate
        logger.debug(f"Rate set to {rate}")

    def set_minimum(self, minimum: float) -> None:
        """Change the lower bound, clamping the displayed time if needed.

        Raises:
            ClockRangeError: If minimum is above maximum, +inf or NaN.
        """
        previous_time = self.current_time()

        if math.isnan(minimum):
            raise ClockRangeError("Minimum must be a number, got NaN", "minimum", minimum)
        if minimum > self.maximum or minimum == math.inf:
            raise ClockRangeError(
                f"Cannot set minimum above maximum: {minimum} > {self.maximum}",
                "minimum",
                minimum,
            )

        self.minimum = minimum
        self.calibrate(previous_time)
        logger.debug(f"Minimum set to {minimum}")

    def set_maximum(self, maximum: float) -> None:
        """Change the upper bound, clamping the displayed time if needed.

        Raises:
            ClockRangeError: If maximum is below minimum, -inf or NaN.
        """
        previous_time = self.current_time()

        if math.isnan(maximum):
            raise ClockRangeError("Maximum must be a number, got NaN", "maximum", maximum)
        if maximum < self.minimum or maximum == -math.inf:
            raise ClockRangeError(
                f"Cannot set maximum below minimum: {maximum} < {self.minimum}",
                "maximum",
                maximum,
            )

        self.maximum = maximum
        self.calibrate(previous_time)
        logger.debug(f"Maximum set to {maximum}")

    def set_loop(self, loop: bool) -> None:
        """Enable or disable wrapping at the bounds."""
        self.calibrate(self.current_time())
        self.loop = bool(loop)
        logger.debug(f"Loop set to {self.loop}")

    def set_time(self, virtual_time: float) -> None:
        """Jump to a virtual time (clamped to the bounds).

        Raises:
            ClockRangeError: If virtual_time is NaN.
        """
        if math.isnan(virtual_time):
            raise ClockRangeError("Time must be a number, got NaN", "time", virtual_time)
        self.calibrate(virtual_time)
        logger.debug(f"Time set to {self.reference_time}")
