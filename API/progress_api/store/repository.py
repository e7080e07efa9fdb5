"""Data-access interface for the aggregation engine and its SQLAlchemy implementation."""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from progress_api.core.errors import DataFetchError
from progress_api.models.entities import (
    ChatbotScore,
    GrammarErrorLog,
    LessonListeningScore,
    LessonReadingScore,
    LessonSpeakingScore,
    LessonWritingScore,
    PronunciationScore,
    TaskCompletion,
    User,
    UserLessonProgress,
    UserOrganization,
    VocabularyEntry,
)
from progress_api.store.records import (
    ActivityRecord,
    ConversationRecord,
    GrammarErrorRecord,
    LearnerAccount,
    LessonProgressRecord,
    Membership,
    RecordCategory,
    Severity,
    SkillScoreRecord,
    VocabularyRecord,
    as_aware,
    clamp_percent,
)


MEMBERSHIP_CATEGORY = "membership"
ACCOUNTS_CATEGORY = "accounts"


class ProgressStore(ABC):
    @abstractmethod
    async def fetch_members(self, organization_code: str) -> list[Membership]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_accounts(self, learner_ids: Sequence[str]) -> list[LearnerAccount]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_records(self, category: RecordCategory, learner_ids: Sequence[str]) -> list:
        """Return every row of ``category`` belonging to ``learner_ids`` (no pagination)."""
        raise NotImplementedError


def _first_number(*values: float | None) -> float | None:
    for value in values:
        if value is not None:
            return value
    return None


def _pronunciation_score(row: PronunciationScore) -> float:
    if row.pronunciation_score is not None:
        return row.pronunciation_score
    try:
        items = json.loads(row.scores or "[]")
        values = [float(item.get("score") or 0) for item in items if isinstance(item, dict)]
    except (TypeError, ValueError, AttributeError):
        return 0.0
    return sum(values) / len(values) if values else 0.0


def _skill_record(skill: RecordCategory, row, score: float | None) -> SkillScoreRecord:
    return SkillScoreRecord(
        learner_id=row.user_id,
        skill=skill,
        score=clamp_percent(score),
        created_at=as_aware(row.created_at),
        task_id=row.task_id,
        lesson_id=row.lesson_id,
    )


_ROW_CONVERTERS: dict[RecordCategory, tuple[type, Callable]] = {
    RecordCategory.LESSON_PROGRESS: (
        UserLessonProgress,
        lambda row: LessonProgressRecord(
            learner_id=row.user_id,
            lesson_id=row.lesson_id,
            completion_percentage=float(row.completion_percentage or 0.0),
            last_accessed=as_aware(row.last_accessed) if row.last_accessed else None,
            lesson_title=row.lesson_title,
        ),
    ),
    RecordCategory.TASKS: (
        TaskCompletion,
        lambda row: ActivityRecord(
            learner_id=row.user_id,
            completed_at=as_aware(row.completed_at),
            task_id=row.task_id,
            course_id=row.course_id,
        ),
    ),
    RecordCategory.SPEAKING: (
        LessonSpeakingScore,
        lambda row: _skill_record(
            RecordCategory.SPEAKING, row, _first_number(row.percentage_score, row.score)
        ),
    ),
    RecordCategory.LISTENING: (
        LessonListeningScore,
        lambda row: _skill_record(
            RecordCategory.LISTENING, row, _first_number(row.score, row.score_percentage)
        ),
    ),
    RecordCategory.READING: (
        LessonReadingScore,
        lambda row: _skill_record(RecordCategory.READING, row, row.percentage_score),
    ),
    RecordCategory.WRITING: (
        LessonWritingScore,
        lambda row: _skill_record(RecordCategory.WRITING, row, row.score),
    ),
    RecordCategory.PRONUNCIATION: (
        PronunciationScore,
        lambda row: _skill_record(RecordCategory.PRONUNCIATION, row, _pronunciation_score(row)),
    ),
    RecordCategory.GRAMMAR: (
        GrammarErrorLog,
        lambda row: GrammarErrorRecord(
            learner_id=row.user_id,
            severity=Severity.parse(row.severity),
            created_at=as_aware(row.created_at),
            error_type=row.error_type,
        ),
    ),
    RecordCategory.VOCABULARY: (
        VocabularyEntry,
        lambda row: VocabularyRecord(
            learner_id=row.user_id,
            term=row.term,
            first_seen=as_aware(row.first_seen or row.created_at),
            times_seen=max(0, int(row.times_seen or 0)),
            times_correct=max(0, int(row.times_correct or 0)),
        ),
    ),
    RecordCategory.CONVERSATIONS: (
        ChatbotScore,
        lambda row: ConversationRecord(
            learner_id=row.user_id,
            created_at=as_aware(row.created_at),
            task_id=row.task_id,
            score=row.score,
        ),
    ),
}


def _order_column(model: type):
    for name in ("created_at", "completed_at", "last_accessed"):
        column = getattr(model, name, None)
        if column is not None:
            return column.desc()
    return None


class SqlProgressStore(ProgressStore):
    """Reads raw rows through SQLAlchemy; every call uses its own session so calls can run concurrently."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _scalars(self, category: str, statement) -> list:
        try:
            async with self.session_factory() as session:
                result = await session.execute(statement)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise DataFetchError(category, f"Failed to fetch {category}: {exc.__class__.__name__}") from exc

    async def fetch_members(self, organization_code: str) -> list[Membership]:
        rows = await self._scalars(
            MEMBERSHIP_CATEGORY,
            select(UserOrganization)
            .where(UserOrganization.organization_code == organization_code)
            .order_by(UserOrganization.id),
        )
        return [
            Membership(
                learner_id=row.user_id,
                organization_code=row.organization_code,
                joined_at=as_aware(row.created_at) if row.created_at else None,
            )
            for row in rows
        ]

    async def fetch_accounts(self, learner_ids: Sequence[str]) -> list[LearnerAccount]:
        if not learner_ids:
            return []
        rows = await self._scalars(ACCOUNTS_CATEGORY, select(User).where(User.user_id.in_(list(learner_ids))))
        return [
            LearnerAccount(
                learner_id=row.user_id,
                name=row.name,
                email=row.email,
                first_name=row.first_name,
                last_name=row.last_name,
                created_at=as_aware(row.created_at) if row.created_at else None,
            )
            for row in rows
        ]

    async def fetch_records(self, category: RecordCategory, learner_ids: Sequence[str]) -> list:
        if not learner_ids:
            return []
        model, convert = _ROW_CONVERTERS[category]
        statement = select(model).where(model.user_id.in_(list(learner_ids)))
        order = _order_column(model)
        if order is not None:
            statement = statement.order_by(order)
        rows = await self._scalars(category.value, statement)
        return [convert(row) for row in rows]
