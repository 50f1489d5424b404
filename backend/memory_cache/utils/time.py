"""Time helpers.

Timestamps throughout the store are integer milliseconds since the epoch.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

MS_PER_DAY = 86_400_000


def now_ms() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


def days_to_ms(days: float) -> int:
    return int(days * MS_PER_DAY)


def age_in_days(timestamp_ms: int, reference_ms: int) -> float:
    """Age of ``timestamp_ms`` at ``reference_ms``; timestamps in the future count as age zero."""
    return max(0.0, (reference_ms - timestamp_ms) / MS_PER_DAY)


def ms_to_datetime(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
