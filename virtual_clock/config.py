"""Clock tuning configuration."""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "VIRTUAL_CLOCK_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ClockConfig(BaseModel):
    """Tuning parameters for a VirtualClock.

    None of these change what time the clock displays; they only affect how
    time listeners are driven.

    Args:
        retry_delay_ms: Real-time delay before re-checking a listener whose
            target equals the instant it last fired at. Any small positive
            value works; it only has to let time move on.
        catch_callback_errors: Whether exceptions raised by time listener
            callbacks are logged and contained (True) or re-raised from the
            timer callback after the listener has been rescheduled (False).
    """

    model_config = ConfigDict(frozen=True)

    retry_delay_ms: float = Field(
        default=1.0,
        gt=0.0,
        description="Delay before re-checking a listener at an unchanged instant",
    )
    catch_callback_errors: bool = Field(
        default=True,
        description="Log and contain time listener callback errors",
    )

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ClockConfig":
        """Build a config from VIRTUAL_CLOCK_* environment variables.

        A ``.env`` file is loaded first (without overriding variables that
        are already set). Unset or unparseable variables fall back to the
        field defaults.

        Args:
            env_file: Path to a .env file (defaults to python-dotenv's search).
            environ: Mapping to read instead of os.environ.

        Returns:
            ClockConfig populated from the environment.

        Raises:
            pydantic.ValidationError: If a parsed value is out of range
                (e.g. a non-positive retry delay).
        """
        if environ is None:
            load_dotenv(dotenv_path=env_file, override=False)
            environ = os.environ

        values: dict[str, object] = {}

        retry_delay = environ.get(f"{ENV_PREFIX}RETRY_DELAY_MS")
        if retry_delay is not None and retry_delay.strip():
            try:
                values["retry_delay_ms"] = float(retry_delay.strip())
            except ValueError:
                logger.warning(
                    f"Ignoring unparseable {ENV_PREFIX}RETRY_DELAY_MS={retry_delay!r}"
                )

        catch_errors = _parse_flag(environ.get(f"{ENV_PREFIX}CATCH_CALLBACK_ERRORS"))
        if catch_errors is not None:
            values["catch_callback_errors"] = catch_errors

        return cls(**values)


def _parse_flag(raw: Optional[str]) -> Optional[bool]:
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return None
