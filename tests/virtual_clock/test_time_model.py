"""Unit tests for TimeModel.

GENERAL PATTERN TESTS:
    - Instantiation tests verify defaults and field validation
    - Serialization tests verify Pydantic dumps of the calibration state

TIME_MODEL-SPECIFIC TESTS:
    - current_time() under rate, bounds, clamping and loop folding
    - start/stop freezing and resuming without jumps
    - set_rate/set_loop continuity while running
    - set_minimum/set_maximum validation and clamping
    - set_time discontinuity and clamping
"""

import math

import pytest
from pydantic import ValidationError

from virtual_clock import ClockRangeError, ManualTimeSource, TimeModel
from tests.fixtures.core.clocks import create_time_model


class TestTimeModelInstantiation:
    """GENERAL PATTERN: Test instantiation and validation."""

    def test_defaults(self):
        """Test a new model is stopped at 0 with rate 1 and no bounds."""
        model, _ = create_time_model()

        assert model.running is False
        assert model.rate == 1.0
        assert model.minimum == -math.inf
        assert model.maximum == math.inf
        assert model.loop is False
        assert model.current_time() == 0.0

    def test_takes_initial_wall_reading(self):
        """Test the first calibration point uses the time source reading."""
        model, _ = create_time_model(start_ms=1234.0)

        assert model.reference_wall_time == 1234.0

    def test_default_time_source_is_monotonic(self):
        """Test a model without an injected source still computes time."""
        model = TimeModel()

        assert model.current_time() == 0.0

    def test_nan_rate_rejected(self):
        """Test NaN field values fail validation."""
        with pytest.raises(ValidationError):
            TimeModel(time_source=ManualTimeSource(), rate=math.nan)

    def test_inverted_bounds_rejected(self):
        """Test minimum above maximum fails validation."""
        with pytest.raises(ValidationError):
            TimeModel(time_source=ManualTimeSource(), minimum=10, maximum=5)

    def test_serialization_round_trip(self):
        """Test the calibration state survives model_dump()."""
        model, source = create_time_model(rate=2.0, minimum=0.0, maximum=50.0, loop=True)

        restored = TimeModel(time_source=source, **model.model_dump())

        assert restored.model_dump() == model.model_dump()


class TestCurrentTime:
    """TIME_MODEL-SPECIFIC: Test the wall-clock to virtual time mapping."""

    def test_stopped_time_does_not_advance(self):
        """Test wall time passing has no effect while stopped."""
        model, source = create_time_model()

        source.advance(500)

        assert model.current_time() == 0.0

    def test_running_time_scales_with_rate(self):
        """Test running time advances by rate per wall millisecond."""
        model, source = create_time_model(rate=3.0)
        model.start()

        source.advance(10)

        assert model.current_time() == 30.0

    def test_negative_rate_runs_backwards(self):
        """Test a negative rate makes time decrease."""
        model, source = create_time_model(rate=-0.5)
        model.start()

        source.advance(10)

        assert model.current_time() == -5.0

    def test_zero_rate_freezes_running_time(self):
        """Test rate 0 keeps time still even while running."""
        model, source = create_time_model(rate=0.0, reference_time=7.0)
        model.start()

        source.advance(100)

        assert model.running is True
        assert model.current_time() == 7.0

    def test_clamps_at_maximum(self):
        """Test time stops at the maximum without looping."""
        model, source = create_time_model(maximum=10.0)
        model.start()

        source.advance(25)

        assert model.current_time() == 10.0

    def test_clamps_at_minimum_running_backwards(self):
        """Test time stops at the minimum when running backwards."""
        model, source = create_time_model(rate=-1.0, minimum=-3.0)
        model.start()

        source.advance(25)

        assert model.current_time() == -3.0

    def test_loop_wraps_at_maximum(self):
        """Test looping time wraps back to the minimum at the maximum."""
        model, source = create_time_model(minimum=0.0, maximum=10.0, loop=True)
        model.start()

        source.advance(10)
        assert model.current_time() == 0.0

        source.advance(13)
        assert model.current_time() == 3.0

    def test_loop_wraps_backwards_below_minimum(self):
        """Test looping time run backwards re-enters from the maximum."""
        model, source = create_time_model(
            rate=-1.0, minimum=0.0, maximum=10.0, loop=True, reference_time=2.0
        )
        model.start()

        source.advance(5)

        assert model.current_time() == 7.0

    def test_loop_with_nonzero_minimum(self):
        """Test folding works for windows that do not start at zero."""
        model, source = create_time_model(
            minimum=10.0, maximum=20.0, loop=True, reference_time=10.0
        )
        model.start()

        source.advance(15)
        assert model.current_time() == 15.0

        source.advance(30)
        assert model.current_time() == 15.0

    def test_loop_needs_finite_bounds(self):
        """Test loop with an infinite bound clamps instead of wrapping."""
        model, source = create_time_model(maximum=10.0, loop=True)
        model.start()

        source.advance(15)

        assert model.is_loopable is False
        assert model.current_time() == 10.0

    def test_zero_span_loop_reads_minimum(self):
        """Test a looping window of zero length pins time at its bound."""
        model, source = create_time_model(minimum=5.0, maximum=5.0, loop=True)
        model.start()

        source.advance(100)

        assert model.current_time() == 5.0

    @pytest.mark.parametrize("rate", [-3.0, -0.25, 0.0, 0.5, 7.0])
    @pytest.mark.parametrize("loop", [False, True])
    def test_time_stays_within_bounds(self, rate, loop):
        """Test time never leaves the window for any rate and loop setting."""
        model, source = create_time_model(
            rate=rate, minimum=-4.0, maximum=6.0, loop=loop
        )
        model.start()

        for step in range(1, 60):
            source.advance(step * 0.75)
            if step % 7 == 0:
                model.stop()
            elif step % 5 == 0:
                model.start()
            current = model.current_time()
            assert model.minimum <= current <= model.maximum
            if loop:
                assert current < model.maximum


class TestStartStop:
    """TIME_MODEL-SPECIFIC: Test running state transitions."""

    def test_start_returns_whether_state_changed(self):
        """Test start() reports a transition only once."""
        model, _ = create_time_model()

        assert model.start() is True
        assert model.start() is False

    def test_stop_returns_whether_state_changed(self):
        """Test stop() reports a transition only once."""
        model, _ = create_time_model()

        assert model.stop() is False
        model.start()
        assert model.stop() is True

    def test_stop_freezes_current_time(self):
        """Test stopping keeps the displayed time."""
        model, source = create_time_model()
        model.start()
        source.advance(40)

        model.stop()
        source.advance(100)

        assert model.current_time() == 40.0

    def test_restart_resumes_without_jump(self):
        """Test time resumes from where it stopped."""
        model, source = create_time_model()
        model.start()
        source.advance(40)
        model.stop()
        source.advance(1000)

        model.start()
        source.advance(5)

        assert model.current_time() == 45.0


class TestContinuousSetters:
    """TIME_MODEL-SPECIFIC: Test setters that must not make time jump."""

    def test_set_rate_while_running_keeps_time(self):
        """Test changing rate re-calibrates at the displayed time."""
        model, source = create_time_model()
        model.start()
        source.advance(10)

        model.set_rate(4.0)
        assert model.current_time() == 10.0

        source.advance(5)
        assert model.current_time() == 30.0

    def test_set_rate_while_stopped(self):
        """Test changing rate while stopped only affects later running."""
        model, source = create_time_model()

        model.set_rate(-2.0)
        model.start()
        source.advance(3)

        assert model.current_time() == -6.0

    def test_set_rate_nan_rejected(self):
        """Test a NaN rate is rejected and the old rate kept."""
        model, _ = create_time_model()

        with pytest.raises(ClockRangeError):
            model.set_rate(math.nan)

        assert model.rate == 1.0

    def test_set_loop_keeps_time(self):
        """Test toggling loop re-calibrates at the displayed time."""
        model, source = create_time_model(minimum=0.0, maximum=10.0, loop=True)
        model.start()
        source.advance(14)
        assert model.current_time() == 4.0

        model.set_loop(False)
        assert model.current_time() == 4.0

        source.advance(20)
        assert model.current_time() == 10.0


class TestBounds:
    """TIME_MODEL-SPECIFIC: Test minimum/maximum validation and clamping."""

    def test_set_maximum_preserves_time_inside_window(self):
        """Test a bound change leaves an in-range time untouched."""
        model, _ = create_time_model(reference_time=5.0)

        model.set_maximum(10.0)

        assert model.current_time() == 5.0

    def test_set_minimum_clamps_time(self):
        """Test raising the minimum above the time clamps the time."""
        model, _ = create_time_model(reference_time=5.0)

        model.set_minimum(7.0)

        assert model.current_time() == 7.0

    def test_set_maximum_clamps_running_time(self):
        """Test lowering the maximum below a running time clamps it."""
        model, source = create_time_model()
        model.start()
        source.advance(50)

        model.set_maximum(20.0)

        assert model.current_time() == 20.0

    def test_set_bound_while_running_keeps_time(self):
        """Test a bound change mid-run does not make time jump."""
        model, source = create_time_model()
        model.start()
        source.advance(5)

        model.set_maximum(100.0)
        assert model.current_time() == 5.0

        source.advance(5)
        assert model.current_time() == 10.0

    def test_minimum_above_maximum_rejected(self):
        """Test minimum > maximum fails and leaves state unchanged."""
        model, _ = create_time_model(reference_time=3.0, maximum=10.0)

        with pytest.raises(ClockRangeError) as exc_info:
            model.set_minimum(20.0)

        assert exc_info.value.field == "minimum"
        assert model.minimum == -math.inf
        assert model.maximum == 10.0
        assert model.current_time() == 3.0

    def test_minimum_infinite_rejected(self):
        """Test minimum = +inf is rejected even without a finite maximum."""
        model, _ = create_time_model()

        with pytest.raises(ClockRangeError):
            model.set_minimum(math.inf)

        assert model.minimum == -math.inf

    def test_maximum_below_minimum_rejected(self):
        """Test maximum < minimum fails and leaves state unchanged."""
        model, _ = create_time_model(minimum=0.0, reference_time=3.0)

        with pytest.raises(ClockRangeError) as exc_info:
            model.set_maximum(-1.0)

        assert exc_info.value.field == "maximum"
        assert model.maximum == math.inf
        assert model.current_time() == 3.0

    def test_maximum_negative_infinite_rejected(self):
        """Test maximum = -inf is rejected."""
        model, _ = create_time_model()

        with pytest.raises(ClockRangeError):
            model.set_maximum(-math.inf)

    def test_equal_bounds_allowed(self):
        """Test minimum == maximum is a valid (degenerate) window."""
        model, _ = create_time_model(reference_time=3.0)

        model.set_maximum(4.0)
        model.set_minimum(4.0)

        assert model.current_time() == 4.0

    def test_range_error_is_value_error(self):
        """Test ClockRangeError can be caught as ValueError."""
        model, _ = create_time_model(maximum=1.0)

        with pytest.raises(ValueError):
            model.set_minimum(2.0)


class TestSetTime:
    """TIME_MODEL-SPECIFIC: Test explicit time jumps."""

    def test_set_time_jumps(self):
        """Test set_time moves time discontinuously."""
        model, source = create_time_model()
        model.start()
        source.advance(10)

        model.set_time(100.0)
        assert model.current_time() == 100.0

        source.advance(1)
        assert model.current_time() == 101.0

    def test_set_time_is_clamped(self):
        """Test set_time outside the window is clamped to the nearest bound."""
        model, _ = create_time_model(minimum=0.0, maximum=10.0)

        model.set_time(50.0)
        assert model.current_time() == 10.0

        model.set_time(-50.0)
        assert model.current_time() == 0.0

    def test_set_time_nan_rejected(self):
        """Test a NaN time is rejected."""
        model, _ = create_time_model(reference_time=2.0)

        with pytest.raises(ClockRangeError):
            model.set_time(math.nan)

        assert model.current_time() == 2.0
