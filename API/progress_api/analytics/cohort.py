"""
Cohort summary plus the filter and sort vocabulary used by the dashboard.

Filter thresholds mirror the single-card flags so per-filter counts always
agree with ``atRiskOfDropout``, ``needsAttention`` and the summary counts.
"""
from __future__ import annotations

import unicodedata
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone

from progress_api.analytics.scoring import INACTIVE_DAYS_THRESHOLD
from progress_api.analytics.timeutils import mean, round_half_up
from progress_api.schemas.progress import CohortSummary, ProgressCard

HIGH_SCORE = 80
LOW_SCORE = 60
HIGH_ENGAGEMENT = 80
LOW_ENGAGEMENT = 50
LONG_STREAK = 7
GRAMMAR_ISSUE_RATE = 30
VOCABULARY_BUILDER_WEEKLY = 10

CardPredicate = Callable[[ProgressCard], bool]

FILTERS: dict[str, CardPredicate] = {
    "high-achievers": lambda c: c.average_score >= HIGH_SCORE,
    "struggling": lambda c: c.average_score < LOW_SCORE,
    "at-risk": lambda c: c.at_risk_of_dropout,
    "needs-attention": lambda c: c.needs_attention,
    "improving": lambda c: c.performance_trend == "improving",
    "declining": lambda c: c.performance_trend == "declining",
    "highly-engaged": lambda c: c.engagement_score >= HIGH_ENGAGEMENT,
    "low-engagement": lambda c: c.engagement_score < LOW_ENGAGEMENT,
    "active-streaks": lambda c: c.current_streak > 0,
    "long-streaks": lambda c: c.current_streak >= LONG_STREAK,
    "inactive-week": lambda c: c.inactivity_days > INACTIVE_DAYS_THRESHOLD,
    "active-today": lambda c: c.inactivity_days == 0,
    "ahead": lambda c: c.learning_pace == "ahead",
    "on-track": lambda c: c.learning_pace == "on-track",
    "behind": lambda c: c.learning_pace == "behind",
    "strong-speaking": lambda c: c.skills.speaking.score >= HIGH_SCORE,
    "need-speaking": lambda c: c.skills.speaking.score < LOW_SCORE,
    "strong-listening": lambda c: c.skills.listening.score >= HIGH_SCORE,
    "need-listening": lambda c: c.skills.listening.score < LOW_SCORE,
    "grammar-issues": lambda c: c.skills.grammar.error_rate > GRAMMAR_ISSUE_RATE,
    "vocabulary-builders": lambda c: c.skills.vocabulary.weekly_new >= VOCABULARY_BUILDER_WEEKLY,
}


def summarize_cohort(cards: Sequence[ProgressCard]) -> CohortSummary:
    if not cards:
        return CohortSummary(
            total_students=0,
            active_students=0,
            at_risk_students=0,
            average_progress=0,
            average_engagement=0,
        )
    return CohortSummary(
        total_students=len(cards),
        active_students=sum(1 for c in cards if c.inactivity_days <= INACTIVE_DAYS_THRESHOLD),
        at_risk_students=sum(1 for c in cards if c.at_risk_of_dropout),
        average_progress=round_half_up(mean([c.overall_progress for c in cards])),
        average_engagement=round_half_up(mean([c.engagement_score for c in cards])),
    )


def apply_filters(cards: Iterable[ProgressCard], filters: Sequence[str]) -> list[ProgressCard]:
    """Keep cards matching every named filter. Unknown names raise KeyError."""
    predicates = [FILTERS[name] for name in dict.fromkeys(filters)]
    return [card for card in cards if all(predicate(card) for predicate in predicates)]


def filter_counts(cards: Sequence[ProgressCard]) -> dict[str, int]:
    return {name: sum(1 for card in cards if predicate(card)) for name, predicate in FILTERS.items()}


def search_cards(cards: Iterable[ProgressCard], query: str | None) -> list[ProgressCard]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(cards)
    return [
        card
        for card in cards
        if needle in card.name.lower()
        or needle in card.user_id.lower()
        or (card.email is not None and needle in card.email.lower())
    ]


def name_collation_key(name: str) -> tuple[str, str]:
    """Accent- and case-insensitive ordering key, raw name as tie-break."""
    decomposed = unicodedata.normalize("NFKD", name)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return folded, name


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

SORTS: dict[str, tuple[Callable[[ProgressCard], object], bool]] = {
    "engagement": (lambda c: c.engagement_score, True),
    "progress": (lambda c: c.overall_progress, True),
    # Learners who never completed a task sort last.
    "activity": (lambda c: c.last_active_date or _EPOCH, True),
    "name": (lambda c: name_collation_key(c.name), False),
}


def sort_cards(cards: Iterable[ProgressCard], sort_by: str = "engagement") -> list[ProgressCard]:
    key, descending = SORTS[sort_by]
    return sorted(cards, key=key, reverse=descending)
