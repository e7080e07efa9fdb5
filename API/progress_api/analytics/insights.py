from __future__ import annotations

from datetime import datetime

from progress_api.schemas.progress import Achievement, SkillMetrics

GRAMMAR_ERROR_RATE_LIMIT = 30
PRONUNCIATION_TARGET = 70
WEEKLY_VOCABULARY_TARGET = 10
WEAKEST_SKILL_TARGET = 60

# (name, icon, predicate over (current_streak, lessons_completed, words_learned, average_score))
ACHIEVEMENT_RULES = (
    ("Week Streak", "flame", lambda streak, lessons, words, avg: streak >= 7),
    ("Month Streak", "star", lambda streak, lessons, words, avg: streak >= 30),
    ("10 Lessons Complete", "books", lambda streak, lessons, words, avg: lessons >= 10),
    ("50 Lessons Complete", "target", lambda streak, lessons, words, avg: lessons >= 50),
    ("100 Words Learned", "speech", lambda streak, lessons, words, avg: words >= 100),
    ("High Performer", "trophy", lambda streak, lessons, words, avg: avg >= 80),
)


def recommended_focus(
    skills: SkillMetrics,
    weakest_skill: str,
    weakest_score: int,
    current_streak: int,
) -> list[str]:
    focus: list[str] = []
    if skills.grammar.error_rate > GRAMMAR_ERROR_RATE_LIMIT:
        focus.append("Grammar practice needed")
    if skills.pronunciation.accuracy < PRONUNCIATION_TARGET:
        focus.append("Pronunciation exercises")
    if skills.vocabulary.weekly_new < WEEKLY_VOCABULARY_TARGET:
        focus.append("Expand vocabulary")
    if weakest_score < WEAKEST_SKILL_TARGET:
        focus.append(f"Focus on {weakest_skill}")
    if current_streak == 0:
        focus.append("Re-establish daily practice")
    return focus


def achievements(
    current_streak: int,
    lessons_completed: int,
    words_learned: int,
    average_score: int,
    now: datetime,
) -> list[Achievement]:
    return [
        Achievement(name=name, date=now, icon=icon)
        for name, icon, earned in ACHIEVEMENT_RULES
        if earned(current_streak, lessons_completed, words_learned, average_score)
    ]
