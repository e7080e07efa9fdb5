from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SkillTrend = Literal["up", "down", "stable"]
PerformanceTrend = Literal["improving", "declining", "stable"]
ActivityTrend = Literal["increasing", "decreasing", "stable"]
LearningPace = Literal["ahead", "on-track", "behind"]
TimeOfDay = Literal["morning", "afternoon", "evening"]
SortKey = Literal["engagement", "progress", "activity", "name"]
ScoredSkill = Literal["speaking", "listening", "reading", "writing", "pronunciation"]
FilterKey = Literal[
    "high-achievers",
    "struggling",
    "at-risk",
    "needs-attention",
    "improving",
    "declining",
    "highly-engaged",
    "low-engagement",
    "active-streaks",
    "long-streaks",
    "inactive-week",
    "active-today",
    "ahead",
    "on-track",
    "behind",
    "strong-speaking",
    "need-speaking",
    "strong-listening",
    "need-listening",
    "grammar-issues",
    "vocabulary-builders",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Skills ───────────────────────────────────────────────────────────────────

class SkillScore(CamelModel):
    score: int = Field(ge=0, le=100)
    trend: SkillTrend
    sessions: int = Field(ge=0)


class GrammarMetrics(CamelModel):
    error_rate: int = Field(ge=0, le=100)
    trend: PerformanceTrend
    total_errors: int = Field(ge=0)


class PronunciationMetrics(CamelModel):
    accuracy: int = Field(ge=0, le=100)
    trend: SkillTrend
    sessions: int = Field(ge=0)


class VocabularyMetrics(CamelModel):
    words_learned: int = Field(ge=0)
    weekly_new: int = Field(ge=0)
    retention_rate: int = Field(ge=0, le=100)


class SkillMetrics(CamelModel):
    speaking: SkillScore
    listening: SkillScore
    reading: SkillScore
    writing: SkillScore
    grammar: GrammarMetrics
    pronunciation: PronunciationMetrics
    vocabulary: VocabularyMetrics


# ── Card ─────────────────────────────────────────────────────────────────────

class RecentScore(CamelModel):
    date: datetime
    score: int
    type: str


class Achievement(CamelModel):
    name: str
    date: datetime
    icon: str


class RecentActivity(CamelModel):
    type: str
    title: str
    score: float | None = None
    timestamp: datetime


class ProgressCard(CamelModel):
    user_id: str
    name: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    organization: str

    overall_progress: int = Field(ge=0, le=100)
    current_lesson: str
    current_module: str
    lessons_completed: int = Field(ge=0)
    total_lessons: int = Field(ge=0)
    expected_completion: datetime | None
    learning_velocity: float = Field(ge=0)

    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    last_active_date: datetime | None
    weekly_activity_map: dict[str, int]
    average_daily_minutes: int = Field(ge=0)
    total_study_hours: int = Field(ge=0)
    most_active_time: TimeOfDay
    activity_trend: ActivityTrend

    average_score: int = Field(ge=0, le=100)
    strongest_skill: str
    weakest_skill: str
    needs_attention: bool
    performance_trend: PerformanceTrend
    recent_scores: list[RecentScore]

    skills: SkillMetrics

    learning_pace: LearningPace
    predicted_completion_weeks: int | None
    recommended_focus: list[str]
    achievements: list[Achievement]

    recent_activities: list[RecentActivity]

    engagement_score: int = Field(ge=0, le=100)

    at_risk_of_dropout: bool
    inactivity_days: int = Field(ge=0)
    struggling_areas: list[str]


class CohortSummary(CamelModel):
    total_students: int = Field(ge=0)
    active_students: int = Field(ge=0)
    at_risk_students: int = Field(ge=0)
    average_progress: int = Field(ge=0, le=100)
    average_engagement: int = Field(ge=0, le=100)


# ── Requests / responses ─────────────────────────────────────────────────────

class ProgressOverviewRequest(CamelModel):
    organization_code: str = Field(min_length=1)
    filters: list[FilterKey] = Field(default_factory=list)
    sort_by: SortKey = "engagement"
    search: str | None = None


class ProgressOverviewResponse(CamelModel):
    students: list[ProgressCard]
    summary: CohortSummary
    filter_counts: dict[str, int]


class SkillDashboardRequest(CamelModel):
    organization_code: str = Field(min_length=1)
    skill: ScoredSkill


class SkillDashboardEntry(CamelModel):
    user_id: str
    name: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    total_sessions: int = Field(ge=0)
    average_score: int = Field(ge=0, le=100)
    latest_score: int = Field(ge=0, le=100)
    latest_date: datetime | None
    trend: SkillTrend
    unique_tasks: int = Field(ge=0)
    score_distribution: dict[str, int]
