# core/utils/time.py
from __future__ import annotations

import time
from collections.abc import Callable

# Wall-clock milliseconds since the epoch; all persisted timestamps use this unit.
Clock = Callable[[], int]

MS_PER_HOUR = 1000 * 60 * 60


def now_ms() -> int:
    return int(time.time() * 1000)


def ms_to_hours(ms: float) -> float:
    return ms / MS_PER_HOUR
