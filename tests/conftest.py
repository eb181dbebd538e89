"""Pytest configuration and shared fixtures."""

import pytest

# Load environment variables from .env file at test startup
from dotenv import load_dotenv
load_dotenv()

# Import all fixtures from fixture modules
pytest_plugins = [
    "tests.fixtures.core.clocks",
]


@pytest.fixture(autouse=True)
def clean_clock_env(monkeypatch):
    """Keep VIRTUAL_CLOCK_* settings from a local .env out of the tests."""
    monkeypatch.delenv("VIRTUAL_CLOCK_RETRY_DELAY_MS", raising=False)
    monkeypatch.delenv("VIRTUAL_CLOCK_CATCH_CALLBACK_ERRORS", raising=False)
