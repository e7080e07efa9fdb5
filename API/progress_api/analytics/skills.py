"""
Per-skill metrics: mean score, recency trend and session counts for the scored
skills, inverted error metrics for grammar, and vocabulary growth/retention.
"""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from progress_api.analytics.timeutils import mean, round_half_up
from progress_api.analytics.trends import calculate_trend, windowed_trend
from progress_api.schemas.progress import (
    GrammarMetrics,
    PronunciationMetrics,
    SkillMetrics,
    SkillScore,
    VocabularyMetrics,
)
from progress_api.store.records import (
    GrammarErrorRecord,
    LearnerBundle,
    RecordCategory,
    Severity,
    SkillScoreRecord,
    VocabularyRecord,
)

# Fixed order; ties for strongest/weakest resolve to the earliest entry.
SKILL_ORDER = ("Speaking", "Listening", "Reading", "Writing", "Pronunciation", "Grammar")

GRAMMAR_WINDOW = 5
VOCABULARY_WEEK = timedelta(days=7)
RETENTION_RATIO = 0.7
SCORE_BUCKETS = (("0-20", 20), ("21-40", 40), ("41-60", 60), ("61-80", 80), ("81-100", 100))


def newest_first(records: Sequence[SkillScoreRecord]) -> list[SkillScoreRecord]:
    return sorted(records, key=lambda r: r.created_at, reverse=True)


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return max(0, min(100, round_half_up(part / whole * 100)))


def mean_score(records: Sequence[SkillScoreRecord]) -> int:
    if not records:
        return 0
    return max(0, min(100, round_half_up(mean([r.score for r in records]))))


def skill_score(records: Sequence[SkillScoreRecord]) -> SkillScore:
    ordered = newest_first(records)
    return SkillScore(
        score=mean_score(ordered),
        trend=windowed_trend([r.score for r in ordered]),
        sessions=len(ordered),
    )


def pronunciation_metrics(records: Sequence[SkillScoreRecord]) -> PronunciationMetrics:
    stats = skill_score(records)
    return PronunciationMetrics(accuracy=stats.score, trend=stats.trend, sessions=stats.sessions)


def grammar_metrics(errors: Sequence[GrammarErrorRecord]) -> GrammarMetrics:
    ordered = sorted(errors, key=lambda e: e.created_at, reverse=True)
    high = sum(1 for e in ordered if e.severity == Severity.HIGH)

    def high_share(window: list[GrammarErrorRecord]) -> list[float]:
        return [sum(1 for e in window if e.severity == Severity.HIGH) / len(window) * 100]

    trend = "stable"
    if len(ordered) >= GRAMMAR_WINDOW * 2:
        # Fewer HIGH errors recently is an improvement, so the labels are swapped.
        trend = calculate_trend(
            high_share(ordered[:GRAMMAR_WINDOW]),
            high_share(ordered[GRAMMAR_WINDOW:GRAMMAR_WINDOW * 2]),
            improving="declining",
            declining="improving",
        )
    return GrammarMetrics(error_rate=_percent(high, len(ordered)), trend=trend, total_errors=len(ordered))


def distinct_terms(vocabulary: Sequence[VocabularyRecord]) -> dict[str, VocabularyRecord]:
    """Collapse duplicate rows per term: earliest first-seen, highest counters."""
    terms: dict[str, VocabularyRecord] = {}
    for record in vocabulary:
        existing = terms.get(record.term)
        if existing is None:
            terms[record.term] = record
            continue
        terms[record.term] = VocabularyRecord(
            learner_id=record.learner_id,
            term=record.term,
            first_seen=min(existing.first_seen, record.first_seen),
            times_seen=max(existing.times_seen, record.times_seen),
            times_correct=max(existing.times_correct, record.times_correct),
        )
    return terms


def vocabulary_metrics(vocabulary: Sequence[VocabularyRecord], now: datetime) -> VocabularyMetrics:
    terms = distinct_terms(vocabulary)
    week_start = now - VOCABULARY_WEEK
    weekly_new = sum(1 for r in terms.values() if r.first_seen >= week_start)
    retained = sum(1 for r in terms.values() if r.times_correct > r.times_seen * RETENTION_RATIO)
    return VocabularyMetrics(
        words_learned=len(terms),
        weekly_new=weekly_new,
        retention_rate=_percent(retained, len(terms)),
    )


def build_skill_metrics(bundle: LearnerBundle, now: datetime) -> SkillMetrics:
    return SkillMetrics(
        speaking=skill_score(bundle.scores(RecordCategory.SPEAKING)),
        listening=skill_score(bundle.scores(RecordCategory.LISTENING)),
        reading=skill_score(bundle.scores(RecordCategory.READING)),
        writing=skill_score(bundle.scores(RecordCategory.WRITING)),
        grammar=grammar_metrics(bundle.grammar_errors),
        pronunciation=pronunciation_metrics(bundle.scores(RecordCategory.PRONUNCIATION)),
        vocabulary=vocabulary_metrics(bundle.vocabulary, now),
    )


def skill_values(skills: SkillMetrics) -> list[tuple[str, int]]:
    """The six comparable skill values in SKILL_ORDER.

    Grammar contributes ``100 - errorRate`` once the learner has any graded
    practice; a learner with no sessions and no grammar log scores 0 there too.
    """
    practised = skills.grammar.total_errors > 0 or any(
        stat.sessions > 0
        for stat in (skills.speaking, skills.listening, skills.reading, skills.writing, skills.pronunciation)
    )
    values = {
        "Speaking": skills.speaking.score,
        "Listening": skills.listening.score,
        "Reading": skills.reading.score,
        "Writing": skills.writing.score,
        "Pronunciation": skills.pronunciation.accuracy,
        "Grammar": 100 - skills.grammar.error_rate if practised else 0,
    }
    return [(name, values[name]) for name in SKILL_ORDER]


def score_distribution(records: Sequence[SkillScoreRecord]) -> dict[str, int]:
    buckets = {label: 0 for label, _ in SCORE_BUCKETS}
    for record in records:
        for label, upper in SCORE_BUCKETS:
            if record.score <= upper:
                buckets[label] += 1
                break
    return buckets


def summarize_skill_sessions(records: Sequence[SkillScoreRecord]) -> dict:
    """Per-learner figures for a single-skill dashboard."""
    ordered = newest_first(records)
    latest = ordered[0] if ordered else None
    stats = skill_score(ordered)
    return {
        "total_sessions": stats.sessions,
        "average_score": stats.score,
        "latest_score": max(0, min(100, round_half_up(latest.score))) if latest else 0,
        "latest_date": latest.created_at if latest else None,
        "trend": stats.trend,
        "unique_tasks": len({r.task_id for r in ordered if r.task_id}),
        "score_distribution": score_distribution(ordered),
    }
