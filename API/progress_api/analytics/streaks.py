"""
Streak calculation over task completion timestamps.

A streak is a run of consecutive calendar days with at least one completed
task. Several completions on the same day count once.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime

from progress_api.analytics.timeutils import local_day


@dataclass(frozen=True)
class Streaks:
    current: int
    longest: int


def activity_days(timestamps: Iterable[datetime], now: datetime) -> list[date]:
    """Distinct calendar days, most recent first. Days after today count as today."""
    today = now.date()
    return sorted({min(local_day(ts, now), today) for ts in timestamps}, reverse=True)


def _leading_run(days: list[date]) -> int:
    run = 1
    for prev, day in zip(days, days[1:]):
        if (prev - day).days != 1:
            break
        run += 1
    return run


def calculate_streaks(timestamps: Iterable[datetime], now: datetime) -> Streaks:
    days = activity_days(timestamps, now)
    if not days:
        return Streaks(current=0, longest=0)

    longest = run = 1
    for prev, day in zip(days, days[1:]):
        run = run + 1 if (prev - day).days == 1 else 1
        longest = max(longest, run)

    # The current run must end today or yesterday.
    current = _leading_run(days) if (now.date() - days[0]).days <= 1 else 0
    return Streaks(current=current, longest=longest)
