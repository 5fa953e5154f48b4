# clinic/routers/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(
    prefix="/health",
    tags=["Health Checks"],
)

@router.get("")
async def health_check(request: Request):
    """Liveness probe; reports which persistence backend is active."""
    settings = request.app.state.settings
    return {
        "status": "ok",
        "version": settings.app_version,
        "environment": settings.environment,
        "backend": request.app.state.repositories.backend,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
