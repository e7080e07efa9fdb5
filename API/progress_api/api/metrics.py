from __future__ import annotations

from fastapi import APIRouter

from progress_api.core.app_metrics import get_metrics

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/app")
async def app_metrics():
    """Per-route latency (p50/p95) and errors, cards built, degraded fetch counts and alerts."""
    return get_metrics()
