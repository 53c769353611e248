"""Randomized delays for defeating timing correlation."""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from lnmixer.config import Settings

logger = logging.getLogger(__name__)

MIN_DELAY_MS = 100

Sleeper = Callable[[float], Awaitable[None]]


def jittered(base_ms: float, variance: float = 0.3, rng: Optional[random.Random] = None) -> int:
    """Perturb base_ms uniformly by +/- variance * base_ms, floored at 100ms."""
    spread = base_ms * variance
    offset = (rng or random).uniform(-spread, spread)
    return max(MIN_DELAY_MS, int(base_ms + offset))


async def privacy_delay(
    base_ms: float,
    variance: float = 0.3,
    sleep: Sleeper = asyncio.sleep,
    rng: Optional[random.Random] = None,
    reason: str = "privacy",
) -> int:
    """Sleep for a jittered duration and return it in milliseconds."""
    delay_ms = jittered(base_ms, variance, rng)
    logger.debug(f"Applying {reason} delay: {delay_ms}ms")
    await sleep(delay_ms / 1000)
    return delay_ms


@dataclass(frozen=True)
class PrivacyTimings:
    """Base delays (ms) for each privacy sub-transform."""

    distribution_ms: int = 2000
    time_delay_ms: int = 3000
    obfuscation_ms: int = 1500
    decoy_ms: int = 1000
    variance: float = 0.3

    @classmethod
    def from_settings(cls, settings: Settings) -> "PrivacyTimings":
        return cls(
            distribution_ms=settings.distribution_delay_ms,
            time_delay_ms=settings.time_delay_ms,
            obfuscation_ms=settings.obfuscation_delay_ms,
            decoy_ms=settings.decoy_delay_ms,
            variance=settings.jitter_variance,
        )
