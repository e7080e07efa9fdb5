"""
Activity metrics derived from task completions and recent scored sessions.

Study time is estimated from completion counts (a fixed number of minutes
per task); there is no real duration tracking behind these figures.
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta

from progress_api.analytics.skills import newest_first
from progress_api.analytics.timeutils import local_day, round_half_up, whole_days_since
from progress_api.analytics.trends import calculate_trend
from progress_api.schemas.progress import RecentActivity, RecentScore
from progress_api.store.records import ActivityRecord, LearnerBundle, RecordCategory

ACTIVITY_MAP_DAYS = 7
DAILY_MINUTES_WINDOW_DAYS = 30
DEFAULT_ACTIVE_HOUR = 12
PERFORMANCE_WINDOW = 5
RECENT_SCORES_PER_SKILL = 3
RECENT_SCORES_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 5

CORE_SKILLS = (
    (RecordCategory.SPEAKING, "Speaking"),
    (RecordCategory.LISTENING, "Listening"),
    (RecordCategory.READING, "Reading"),
    (RecordCategory.WRITING, "Writing"),
)


def newest_tasks(tasks: Sequence[ActivityRecord]) -> list[ActivityRecord]:
    return sorted(tasks, key=lambda t: t.completed_at, reverse=True)


def last_active(tasks: Sequence[ActivityRecord]) -> datetime | None:
    return max((t.completed_at for t in tasks), default=None)


def inactivity_days(last_active_at: datetime | None, enrolled_at: datetime | None, now: datetime) -> int:
    """Days since the last completion; without any, days since enrollment; else 0."""
    reference = last_active_at or enrolled_at
    if reference is None:
        return 0
    return whole_days_since(reference, now)


def weekly_activity_map(tasks: Sequence[ActivityRecord], now: datetime) -> dict[str, int]:
    days = [now.date() - timedelta(days=i) for i in range(ACTIVITY_MAP_DAYS)]
    activity = {day.isoformat(): 0 for day in days}
    for task in tasks:
        key = min(local_day(task.completed_at, now), now.date()).isoformat()
        if key in activity:
            activity[key] += 1
    return activity


def average_daily_minutes(tasks: Sequence[ActivityRecord], now: datetime, minutes_per_task: int) -> int:
    window_start = now - timedelta(days=DAILY_MINUTES_WINDOW_DAYS)
    recent = sum(1 for t in tasks if t.completed_at >= window_start)
    return round_half_up(recent * minutes_per_task / DAILY_MINUTES_WINDOW_DAYS)


def total_study_hours(tasks: Sequence[ActivityRecord], minutes_per_task: int) -> int:
    return round_half_up(len(tasks) * minutes_per_task / 60)


def time_of_day(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def most_active_time(tasks: Sequence[ActivityRecord], now: datetime) -> str:
    hours = Counter(t.completed_at.astimezone(now.tzinfo).hour for t in tasks)
    if not hours:
        return time_of_day(DEFAULT_ACTIVE_HOUR)
    top = max(hours.values())
    return time_of_day(min(hour for hour, count in hours.items() if count == top))


def activity_trend(tasks: Sequence[ActivityRecord], now: datetime) -> str:
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    this_week = sum(1 for t in tasks if t.completed_at >= week_ago)
    last_week = sum(1 for t in tasks if two_weeks_ago <= t.completed_at < week_ago)
    if this_week > last_week:
        return "increasing"
    if this_week < last_week:
        return "decreasing"
    return "stable"


def performance_trend(bundle: LearnerBundle) -> str:
    recent: list[float] = []
    older: list[float] = []
    for skill, _label in CORE_SKILLS:
        scores = [r.score for r in newest_first(bundle.scores(skill))]
        recent.extend(scores[:PERFORMANCE_WINDOW])
        older.extend(scores[PERFORMANCE_WINDOW:PERFORMANCE_WINDOW * 2])
    return calculate_trend(recent, older, improving="improving", declining="declining")


def recent_scores(bundle: LearnerBundle) -> list[RecentScore]:
    entries = []
    for skill, label in CORE_SKILLS:
        for record in newest_first(bundle.scores(skill))[:RECENT_SCORES_PER_SKILL]:
            entries.append(RecentScore(date=record.created_at, score=round_half_up(record.score), type=label))
    entries.sort(key=lambda e: e.date, reverse=True)
    return entries[:RECENT_SCORES_LIMIT]


def recent_activities(bundle: LearnerBundle) -> list[RecentActivity]:
    items = [
        RecentActivity(type="Task", title=t.task_id or "Practice", timestamp=t.completed_at)
        for t in newest_tasks(bundle.tasks)[:5]
    ]
    items += [
        RecentActivity(type="Speaking", title=r.task_id or "Speaking Practice", score=r.score, timestamp=r.created_at)
        for r in newest_first(bundle.scores(RecordCategory.SPEAKING))[:2]
    ]
    items += [
        RecentActivity(
            type="Listening", title=r.lesson_id or "Listening Practice", score=r.score, timestamp=r.created_at
        )
        for r in newest_first(bundle.scores(RecordCategory.LISTENING))[:2]
    ]
    conversations = sorted(bundle.conversations, key=lambda c: c.created_at, reverse=True)[:2]
    items += [
        RecentActivity(type="AI Chat", title="Conversation Practice", score=c.score, timestamp=c.created_at)
        for c in conversations
    ]
    items.sort(key=lambda a: a.timestamp, reverse=True)
    return items[:RECENT_ACTIVITY_LIMIT]
