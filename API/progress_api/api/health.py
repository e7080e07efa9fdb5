from fastapi import APIRouter

from progress_api.core.settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "progress-dashboard-api",
        "environment": settings.app_env,
        "identity_enrichment": bool(settings.identity_api_key),
    }
