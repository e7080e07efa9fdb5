"""
Lesson completion, overall progress, learning pace and completion prediction.

Overall progress falls back to an activity blend (vocabulary size and number
of conversations) when a learner has no lesson progress rows at all.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from progress_api.analytics.timeutils import round_half_up, whole_days_since
from progress_api.store.records import (
    ConversationRecord,
    LessonProgressRecord,
    SkillScoreRecord,
)

AHEAD_FACTOR = 1.2
BEHIND_FACTOR = 0.8
FALLBACK_COMPONENT_MAX = 50


@dataclass(frozen=True)
class LessonStatus:
    lessons_completed: int
    total_lessons: int
    overall_progress: int
    current_lesson: str
    current_module: str


@dataclass(frozen=True)
class PaceForecast:
    learning_velocity: float
    learning_pace: str
    predicted_completion_weeks: int | None
    expected_completion: datetime | None


def completed_lessons(progress: Sequence[LessonProgressRecord], total_lessons: int) -> int:
    done = {p.lesson_id for p in progress if p.completion_percentage >= 100}
    return min(len(done), max(0, total_lessons))


def conversation_count(
    speaking: Sequence[SkillScoreRecord],
    conversations: Sequence[ConversationRecord],
) -> int:
    spoken = {r.task_id for r in speaking if r.task_id}
    chats = {c.task_id for c in conversations if c.task_id}
    return len(spoken) + len(chats)


def activity_progress(words_learned: int, conversations: int, vocabulary_target: int, conversation_target: int) -> int:
    vocab_part = min(words_learned / max(1, vocabulary_target) * 50, FALLBACK_COMPONENT_MAX)
    conversation_part = min(conversations / max(1, conversation_target) * 50, FALLBACK_COMPONENT_MAX)
    return max(0, min(100, round_half_up(vocab_part + conversation_part)))


def lesson_status(
    progress: Sequence[LessonProgressRecord],
    *,
    total_lessons: int,
    words_learned: int,
    conversations: int,
    vocabulary_target: int,
    conversation_target: int,
) -> LessonStatus:
    completed = completed_lessons(progress, total_lessons)
    if progress:
        overall = round_half_up(completed / total_lessons * 100) if total_lessons > 0 else 0
    else:
        overall = activity_progress(words_learned, conversations, vocabulary_target, conversation_target)

    latest = _latest_lesson(progress)
    current_lesson = (latest.lesson_title or latest.lesson_id) if latest else "Not Started"
    current_module = latest.lesson_id.split("_")[0] if latest and latest.lesson_id else "Module 1"

    return LessonStatus(
        lessons_completed=completed,
        total_lessons=max(0, total_lessons),
        overall_progress=max(0, min(100, overall)),
        current_lesson=current_lesson,
        current_module=current_module,
    )


def _latest_lesson(progress: Sequence[LessonProgressRecord]) -> LessonProgressRecord | None:
    accessed = [p for p in progress if p.last_accessed is not None]
    if accessed:
        return max(accessed, key=lambda p: p.last_accessed)
    return progress[0] if progress else None


def weeks_since(enrolled_at: datetime | None, now: datetime) -> int:
    if enrolled_at is None:
        return 0
    return whole_days_since(enrolled_at, now) // 7


def forecast_pace(
    lessons_completed: int,
    total_lessons: int,
    enrolled_at: datetime | None,
    now: datetime,
    expected_lessons_per_week: float,
) -> PaceForecast:
    actual = lessons_completed / max(1, weeks_since(enrolled_at, now))
    if actual > expected_lessons_per_week * AHEAD_FACTOR:
        pace = "ahead"
    elif actual < expected_lessons_per_week * BEHIND_FACTOR:
        pace = "behind"
    else:
        pace = "on-track"

    predicted_weeks: int | None = None
    expected_completion: datetime | None = None
    if actual > 0:
        remaining = max(0, total_lessons - lessons_completed)
        predicted_weeks = round_half_up(remaining / actual)
        expected_completion = now + timedelta(weeks=predicted_weeks)

    return PaceForecast(
        learning_velocity=round(actual, 1),
        learning_pace=pace,
        predicted_completion_weeks=predicted_weeks,
        expected_completion=expected_completion,
    )
