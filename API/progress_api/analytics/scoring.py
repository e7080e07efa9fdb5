"""Aggregate score, strongest/weakest skill, risk flags and the engagement score."""
from __future__ import annotations

from dataclasses import dataclass

from progress_api.analytics.timeutils import mean, round_half_up

ATTENTION_SCORE_THRESHOLD = 60
INACTIVE_DAYS_THRESHOLD = 7
STREAK_BROKEN_INACTIVE_DAYS = 3
STRUGGLING_THRESHOLD = 50

ENGAGEMENT_BASE = 50
STREAK_POINTS_PER_DAY = 2
STREAK_POINTS_CAP = 20
RECENCY_POINTS_MAX = 20
RECENCY_DECAY_PER_DAY = 2
DAILY_MINUTES_PER_POINT = 3
DAILY_MINUTES_CAP = 20
COMPLETION_WEIGHT = 0.1


@dataclass(frozen=True)
class SkillRanking:
    average_score: int
    strongest_skill: str
    weakest_skill: str
    weakest_score: int
    struggling_areas: list[str]


def rank_skills(values: list[tuple[str, int]]) -> SkillRanking:
    """Rank (name, score) pairs; ties go to the first pair in the given order."""
    if not values:
        return SkillRanking(0, "None", "None", 0, [])
    strongest = values[0]
    weakest = values[0]
    for item in values[1:]:
        if item[1] > strongest[1]:
            strongest = item
        if item[1] < weakest[1]:
            weakest = item
    average = max(0, min(100, round_half_up(mean([score for _, score in values]))))
    return SkillRanking(
        average_score=average,
        strongest_skill=strongest[0],
        weakest_skill=weakest[0],
        weakest_score=weakest[1],
        struggling_areas=[name for name, score in values if score < STRUGGLING_THRESHOLD],
    )


def needs_attention(average_score: int, inactivity_days: int) -> bool:
    return average_score < ATTENTION_SCORE_THRESHOLD or inactivity_days > INACTIVE_DAYS_THRESHOLD


def at_risk_of_dropout(current_streak: int, inactivity_days: int) -> bool:
    return inactivity_days > INACTIVE_DAYS_THRESHOLD or (
        current_streak == 0 and inactivity_days > STREAK_BROKEN_INACTIVE_DAYS
    )


def engagement_score(
    current_streak: int,
    inactivity_days: int,
    average_daily_minutes: float,
    overall_progress: float,
) -> int:
    score = float(ENGAGEMENT_BASE)
    score += min(current_streak * STREAK_POINTS_PER_DAY, STREAK_POINTS_CAP)
    score += max(0, RECENCY_POINTS_MAX - inactivity_days * RECENCY_DECAY_PER_DAY)
    score += min(average_daily_minutes / DAILY_MINUTES_PER_POINT, DAILY_MINUTES_CAP)
    score += overall_progress * COMPLETION_WEIGHT
    return round_half_up(max(0.0, min(100.0, score)))
