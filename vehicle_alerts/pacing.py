"""
Adaptive pacing and retry policy shared by every polling loop.

Each loop owns one RateController (its sleep interval in minutes) and,
where it retries items, one RetryPolicy. Neither holds anything beyond
that, so loops never share state through this module.
"""

import logging

from .config import RateSettings
from .rounding import round_half_up

logger = logging.getLogger(__name__)


def speed_up(current: float, floor: float, step: float = 0.1) -> float:
    """Shorten an interval by `step`, never going below `floor`."""
    return max(floor, round_half_up(current - step, 1))


def slow_down(current: float, ceiling: float, step: float = 0.1) -> float:
    """Lengthen an interval by `step`, never going above `ceiling`."""
    return min(ceiling, round_half_up(current + step, 1))


class RateController:
    """
    Sleep interval of one polling loop.

    Usage:
        rate = RateController(RateSettings(interval=2.5, floor=0.5, ceiling=15))
        rate.speed_up()        # found work
        rate.slow_down()       # nothing to do
        time_to_sleep = rate.seconds
    """

    def __init__(self, settings: RateSettings, name: str = "loop"):
        if settings.floor > settings.ceiling:
            raise ValueError(f"{name}: floor {settings.floor} exceeds ceiling {settings.ceiling}")
        self.settings = settings
        self.name = name
        self.interval = min(settings.ceiling, max(settings.floor, settings.interval))

    @property
    def seconds(self) -> float:
        return self.interval * 60

    def speed_up(self) -> float:
        self.interval = speed_up(self.interval, self.settings.floor, self.settings.speed_up_step)
        logger.debug(f"{self.name}: interval shortened to {self.interval} min")
        return self.interval

    def slow_down(self) -> float:
        self.interval = slow_down(self.interval, self.settings.ceiling, self.settings.slow_down_step)
        logger.debug(f"{self.name}: interval lengthened to {self.interval} min")
        return self.interval


class RetryPolicy:
    """
    Consecutive transient-failure counter for one loop.

    record_failure() returns True once max_error_count failures in a row
    have been seen; the caller then gives up on the current item and
    calls reset().
    """

    def __init__(self, max_error_count: int = 5):
        if max_error_count < 1:
            raise ValueError("max_error_count must be at least 1")
        self.max_error_count = max_error_count
        self.error_count = 0

    @property
    def exhausted(self) -> bool:
        return self.error_count >= self.max_error_count

    def record_failure(self) -> bool:
        self.error_count += 1
        return self.exhausted

    def reset(self) -> None:
        self.error_count = 0
