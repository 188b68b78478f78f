"""Randomized pre-dispatch delay to blur request timing."""

import asyncio
import random

from core.config import ThrottleSettings


async def maybe_delay(settings: ThrottleSettings, rng: random.Random | None = None) -> int:
    """Sleep for a random number of milliseconds in [min_ms, max_ms).

    Returns the delay in milliseconds, 0 when throttling is disabled.
    """
    if not settings.enabled:
        return 0

    if settings.max_ms > settings.min_ms:
        delay_ms = (rng or random).randrange(settings.min_ms, settings.max_ms)
    else:
        delay_ms = settings.min_ms

    if delay_ms:
        await asyncio.sleep(delay_ms / 1000)
    return delay_ms
