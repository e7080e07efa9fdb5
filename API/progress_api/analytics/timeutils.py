"""Calendar helpers shared by the metric functions.

``now`` is always timezone-aware and carries the dashboard timezone; calendar
days are taken in that zone.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timedelta


def local_day(ts: datetime, now: datetime) -> date:
    return ts.astimezone(now.tzinfo).date()


def whole_days_since(ts: datetime, now: datetime) -> int:
    """Elapsed whole days (floor), never negative."""
    return max(0, (now - ts) // timedelta(days=1))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0
