from __future__ import annotations

from collections.abc import Sequence

from progress_api.analytics.timeutils import mean

# Deadband in score points; smaller differences are noise.
TREND_THRESHOLD = 5.0
SKILL_WINDOW = 3


def calculate_trend(
    recent: Sequence[float],
    older: Sequence[float],
    *,
    improving: str = "up",
    declining: str = "down",
) -> str:
    """Compare the mean of ``recent`` against ``older``; either window empty => stable."""
    if not recent or not older:
        return "stable"
    recent_avg = mean(list(recent))
    older_avg = mean(list(older))
    if recent_avg > older_avg + TREND_THRESHOLD:
        return improving
    if recent_avg < older_avg - TREND_THRESHOLD:
        return declining
    return "stable"


def windowed_trend(
    newest_first: Sequence[float],
    window: int = SKILL_WINDOW,
    *,
    improving: str = "up",
    declining: str = "down",
) -> str:
    """Trend of the newest ``window`` values against the ``window`` values before them."""
    return calculate_trend(
        newest_first[:window],
        newest_first[window:window * 2],
        improving=improving,
        declining=declining,
    )
