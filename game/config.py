"""Phase timing configuration read from the environment."""

import logging
import os
from dataclasses import dataclass

from game.rules import DAY_SECONDS, NIGHT_SECONDS, RESULT_SECONDS

logger = logging.getLogger(__name__)

ENV_NIGHT_SECONDS = "MAFIA_NIGHT_SECONDS"
ENV_DAY_SECONDS = "MAFIA_DAY_SECONDS"
ENV_RESULT_SECONDS = "MAFIA_RESULT_SECONDS"


@dataclass(frozen=True)
class PhaseTimings:
    """Length of each timed phase. result_seconds of 0 skips the result pause."""

    night_seconds: float = NIGHT_SECONDS
    day_seconds: float = DAY_SECONDS
    result_seconds: float = RESULT_SECONDS


def _env_seconds(name: str, default: float, allow_zero: bool = False) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, raw, default)
        return default
    if value < 0 or (value == 0 and not allow_zero):
        logger.warning("%s=%r is out of range; using %s", name, raw, default)
        return default
    return value


def load_timings() -> PhaseTimings:
    """Build PhaseTimings from MAFIA_*_SECONDS, falling back to the rule defaults."""
    return PhaseTimings(
        night_seconds=_env_seconds(ENV_NIGHT_SECONDS, NIGHT_SECONDS),
        day_seconds=_env_seconds(ENV_DAY_SECONDS, DAY_SECONDS),
        result_seconds=_env_seconds(ENV_RESULT_SECONDS, RESULT_SECONDS, allow_zero=True),
    )
