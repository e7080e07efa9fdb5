"""Normalised raw rows, as handed from the store to the analytics functions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class RecordCategory(str, Enum):
    LESSON_PROGRESS = "lesson_progress"
    TASKS = "tasks"
    SPEAKING = "speaking"
    LISTENING = "listening"
    READING = "reading"
    WRITING = "writing"
    PRONUNCIATION = "pronunciation"
    GRAMMAR = "grammar"
    VOCABULARY = "vocabulary"
    CONVERSATIONS = "conversations"


SCORED_SKILLS = (
    RecordCategory.SPEAKING,
    RecordCategory.LISTENING,
    RecordCategory.READING,
    RecordCategory.WRITING,
    RecordCategory.PRONUNCIATION,
)


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: str | None) -> "Severity":
        try:
            return cls(str(raw or "").strip().upper())
        except ValueError:
            return cls.UNKNOWN


def as_aware(value: datetime) -> datetime:
    """Treat naive timestamps from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def clamp_percent(value: float | None) -> float:
    if value is None:
        return 0.0
    return max(0.0, min(100.0, float(value)))


@dataclass(frozen=True)
class Membership:
    learner_id: str
    organization_code: str
    joined_at: datetime | None = None


@dataclass(frozen=True)
class LearnerAccount:
    learner_id: str
    name: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class LearnerIdentity:
    learner_id: str
    name: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def placeholder(cls, learner_id: str) -> "LearnerIdentity":
        short = learner_id[5:] if learner_id.startswith("user_") else learner_id
        return cls(learner_id=learner_id, name=f"Student {short[:4]}")


@dataclass(frozen=True)
class ActivityRecord:
    learner_id: str
    completed_at: datetime
    task_id: str | None = None
    course_id: str | None = None


@dataclass(frozen=True)
class SkillScoreRecord:
    learner_id: str
    skill: RecordCategory
    score: float
    created_at: datetime
    task_id: str | None = None
    lesson_id: str | None = None


@dataclass(frozen=True)
class GrammarErrorRecord:
    learner_id: str
    severity: Severity
    created_at: datetime
    error_type: str | None = None


@dataclass(frozen=True)
class VocabularyRecord:
    learner_id: str
    term: str
    first_seen: datetime
    times_seen: int = 0
    times_correct: int = 0


@dataclass(frozen=True)
class LessonProgressRecord:
    learner_id: str
    lesson_id: str
    completion_percentage: float
    last_accessed: datetime | None = None
    lesson_title: str | None = None


@dataclass(frozen=True)
class ConversationRecord:
    learner_id: str
    created_at: datetime
    task_id: str | None = None
    score: float | None = None


@dataclass
class LearnerBundle:
    """Every raw row belonging to one learner for one aggregation request."""

    learner_id: str
    identity: LearnerIdentity
    account: LearnerAccount | None = None
    membership: Membership | None = None
    lesson_progress: list[LessonProgressRecord] = field(default_factory=list)
    tasks: list[ActivityRecord] = field(default_factory=list)
    skill_scores: dict[RecordCategory, list[SkillScoreRecord]] = field(
        default_factory=lambda: {skill: [] for skill in SCORED_SKILLS}
    )
    grammar_errors: list[GrammarErrorRecord] = field(default_factory=list)
    vocabulary: list[VocabularyRecord] = field(default_factory=list)
    conversations: list[ConversationRecord] = field(default_factory=list)

    @property
    def enrolled_at(self) -> datetime | None:
        if self.account and self.account.created_at:
            return self.account.created_at
        if self.membership and self.membership.joined_at:
            return self.membership.joined_at
        return None

    def scores(self, skill: RecordCategory) -> list[SkillScoreRecord]:
        return self.skill_scores.get(skill, [])
