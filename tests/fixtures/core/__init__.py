"""Core infrastructure fixtures."""

from tests.fixtures.core.clocks import (
    CallRecorder,
    ManualClock,
    create_manual_clock,
    create_time_model,
)

__all__ = [
    "CallRecorder",
    "ManualClock",
    "create_manual_clock",
    "create_time_model",
]
