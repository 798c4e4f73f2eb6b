"""Sleeps expressed in domain units.

No jitter and no growth: every call site passes a fixed, configured duration.
"""

import asyncio
from datetime import datetime
from enum import Enum


class TimeUnit(Enum):
    SECOND = 1
    MINUTE = 60
    HOUR = 60 * 60

    def to_seconds(self, duration: float) -> float:
        return duration * self.value


async def sleep(duration: float, unit: TimeUnit) -> None:
    await asyncio.sleep(unit.to_seconds(duration))


def timestamp(now: datetime | None = None) -> str:
    """Local time as shown in progress lines and log.json, e.g. '05/09/2024 @ 14:03:07'."""
    now = now or datetime.now()
    return now.strftime("%d/%m/%Y @ %H:%M:%S")
