"""
Progress aggregation engine.

Resolves a cohort, fetches every raw record category concurrently, partitions
the rows per learner and hands each LearnerBundle to the pure analytics
functions. Only a failed membership lookup aborts a request; any other
failed fetch is logged and replaced by empty data or placeholder identities.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from zoneinfo import ZoneInfo

from progress_api.analytics.card import CourseParameters, build_progress_card
from progress_api.analytics.cohort import (
    apply_filters,
    filter_counts,
    search_cards,
    sort_cards,
    summarize_cohort,
)
from progress_api.analytics.skills import summarize_skill_sessions
from progress_api.core.app_metrics import record_cards_built, record_degraded_fetch
from progress_api.core.errors import FatalFetchError
from progress_api.core.logging import DOMAIN_ASSEMBLY, get_domain_logger
from progress_api.core.settings import settings
from progress_api.schemas.progress import (
    ProgressCard,
    ProgressOverviewResponse,
    SkillDashboardEntry,
)
from progress_api.store.identity import IDENTITY_CATEGORY, IdentityProvider, resolve_identity
from progress_api.store.records import (
    SCORED_SKILLS,
    LearnerAccount,
    LearnerBundle,
    LearnerIdentity,
    Membership,
    RecordCategory,
)
from progress_api.store.repository import ACCOUNTS_CATEGORY, MEMBERSHIP_CATEGORY, ProgressStore

logger = get_domain_logger(__name__, DOMAIN_ASSEMBLY)

ALL_CATEGORIES: tuple[RecordCategory, ...] = tuple(RecordCategory)

_BUNDLE_LISTS = {
    RecordCategory.LESSON_PROGRESS: "lesson_progress",
    RecordCategory.TASKS: "tasks",
    RecordCategory.GRAMMAR: "grammar_errors",
    RecordCategory.VOCABULARY: "vocabulary",
    RecordCategory.CONVERSATIONS: "conversations",
}


class ProgressAggregationEngine:
    def __init__(
        self,
        store: ProgressStore,
        identity_provider: IdentityProvider,
        *,
        params: CourseParameters | None = None,
        timezone_name: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.identity_provider = identity_provider
        self.params = params or CourseParameters.from_settings(settings)
        self.tz = ZoneInfo(timezone_name or settings.dashboard_timezone)
        self.clock = clock

    def now(self) -> datetime:
        current = self.clock() if self.clock else datetime.now(self.tz)
        return current.astimezone(self.tz)

    # ── Data assembly ────────────────────────────────────────────────────────

    async def _members(self, organization_code: str) -> list[Membership]:
        try:
            members = await self.store.fetch_members(organization_code)
        except Exception as exc:
            raise FatalFetchError(MEMBERSHIP_CATEGORY, f"Membership lookup failed for {organization_code}") from exc
        unique: dict[str, Membership] = {}
        for member in members:
            unique.setdefault(member.learner_id, member)
        return list(unique.values())

    def _degraded(self, category: str, exc: Exception) -> None:
        logger.warning("Fetch degraded | category=%s | error=%s", category, exc)
        record_degraded_fetch(category)

    async def _fetch_category(self, category: RecordCategory, learner_ids: Sequence[str]) -> list:
        try:
            return await self.store.fetch_records(category, learner_ids)
        except Exception as exc:
            self._degraded(category.value, exc)
            return []

    async def _fetch_accounts(self, learner_ids: Sequence[str]) -> list[LearnerAccount]:
        try:
            return await self.store.fetch_accounts(learner_ids)
        except Exception as exc:
            self._degraded(ACCOUNTS_CATEGORY, exc)
            return []

    async def _lookup_identities(self, learner_ids: Sequence[str]) -> dict[str, LearnerIdentity]:
        try:
            return await self.identity_provider.lookup(learner_ids)
        except Exception as exc:
            self._degraded(IDENTITY_CATEGORY, exc)
            return {}

    async def assemble(
        self,
        organization_code: str,
        categories: Sequence[RecordCategory] = ALL_CATEGORIES,
        learner_ids: Sequence[str] | None = None,
    ) -> list[LearnerBundle]:
        """Fetch and partition raw rows for the cohort (optionally a subset of its members)."""
        members = await self._members(organization_code)
        if learner_ids is not None:
            wanted = set(learner_ids)
            members = [m for m in members if m.learner_id in wanted]
        ids = [m.learner_id for m in members]
        if not ids:
            return []

        identities, accounts, *record_lists = await asyncio.gather(
            self._lookup_identities(ids),
            self._fetch_accounts(ids),
            *(self._fetch_category(category, ids) for category in categories),
        )

        bundles = {
            m.learner_id: LearnerBundle(
                learner_id=m.learner_id,
                identity=LearnerIdentity.placeholder(m.learner_id),
                membership=m,
            )
            for m in members
        }
        for account in accounts:
            if account.learner_id in bundles:
                bundles[account.learner_id].account = account
        for category, records in zip(categories, record_lists):
            for record in records:
                bundle = bundles.get(record.learner_id)
                if bundle is None:
                    continue
                if category in SCORED_SKILLS:
                    bundle.skill_scores[category].append(record)
                else:
                    getattr(bundle, _BUNDLE_LISTS[category]).append(record)
        for bundle in bundles.values():
            bundle.identity = resolve_identity(
                bundle.learner_id, identities.get(bundle.learner_id), bundle.account
            )

        logger.info(
            "Assembled cohort | organization=%s | learners=%d | categories=%d",
            organization_code,
            len(bundles),
            len(categories),
        )
        return list(bundles.values())

    # ── Operations ───────────────────────────────────────────────────────────

    async def build_cards(self, organization_code: str) -> list[ProgressCard]:
        bundles = await self.assemble(organization_code)
        now = self.now()
        cards = [build_progress_card(bundle, organization_code, now, self.params) for bundle in bundles]
        record_cards_built(len(cards))
        return cards

    async def build_overview(
        self,
        organization_code: str,
        *,
        filters: Sequence[str] = (),
        sort_by: str = "engagement",
        search: str | None = None,
    ) -> ProgressOverviewResponse:
        cards = await self.build_cards(organization_code)
        selected = apply_filters(search_cards(cards, search), filters)
        return ProgressOverviewResponse(
            students=sort_cards(selected, sort_by),
            summary=summarize_cohort(cards),
            filter_counts=filter_counts(cards),
        )

    async def build_student_card(self, organization_code: str, learner_id: str) -> ProgressCard | None:
        bundles = await self.assemble(organization_code, learner_ids=[learner_id])
        if not bundles:
            return None
        record_cards_built(1)
        return build_progress_card(bundles[0], organization_code, self.now(), self.params)

    async def build_skill_dashboard(
        self,
        organization_code: str,
        skill: RecordCategory,
    ) -> list[SkillDashboardEntry]:
        if skill not in SCORED_SKILLS:
            raise ValueError(f"Not a scored skill: {skill}")
        bundles = await self.assemble(organization_code, categories=(skill,))
        entries = []
        for bundle in bundles:
            records = bundle.scores(skill)
            if not records:
                continue
            identity = bundle.identity
            entries.append(
                SkillDashboardEntry(
                    user_id=bundle.learner_id,
                    name=identity.name,
                    email=identity.email,
                    first_name=identity.first_name,
                    last_name=identity.last_name,
                    **summarize_skill_sessions(records),
                )
            )
        return entries
