"""
Teacher dashboard API: cohort progress overview, single-student card and
per-skill dashboards. Every route goes through ProgressAggregationEngine.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from progress_api.core.logging import DOMAIN_API, get_domain_logger
from progress_api.schemas.progress import (
    ProgressCard,
    ProgressOverviewRequest,
    ProgressOverviewResponse,
    SkillDashboardEntry,
    SkillDashboardRequest,
)
from progress_api.services.aggregation import ProgressAggregationEngine
from progress_api.store.database import SessionLocal
from progress_api.store.identity import get_identity_provider
from progress_api.store.records import RecordCategory
from progress_api.store.repository import SqlProgressStore

router = APIRouter(prefix="/teacher-dashboard", tags=["teacher-dashboard"])
logger = get_domain_logger(__name__, DOMAIN_API)


def get_engine() -> ProgressAggregationEngine:
    return ProgressAggregationEngine(SqlProgressStore(SessionLocal), get_identity_provider())


@router.post("/student-progress-overview", response_model=ProgressOverviewResponse)
async def student_progress_overview(
    payload: ProgressOverviewRequest,
    engine: ProgressAggregationEngine = Depends(get_engine),
):
    overview = await engine.build_overview(
        payload.organization_code,
        filters=payload.filters,
        sort_by=payload.sort_by,
        search=payload.search,
    )
    logger.info(
        "Progress overview | organization=%s | students=%d | returned=%d",
        payload.organization_code,
        overview.summary.total_students,
        len(overview.students),
    )
    return overview


@router.get(
    "/organizations/{organization_code}/students/{learner_id}",
    response_model=ProgressCard,
)
async def student_progress_card(
    organization_code: str,
    learner_id: str,
    engine: ProgressAggregationEngine = Depends(get_engine),
):
    card = await engine.build_student_card(organization_code, learner_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Student not found in organization")
    return card


@router.post("/skill-scores", response_model=list[SkillDashboardEntry])
async def skill_scores(
    payload: SkillDashboardRequest,
    engine: ProgressAggregationEngine = Depends(get_engine),
):
    return await engine.build_skill_dashboard(payload.organization_code, RecordCategory(payload.skill))
