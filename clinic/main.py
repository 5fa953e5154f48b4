import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clinic.config import Settings, get_settings
from clinic.core.logging import setup_logging
from clinic.routers import advice, appointments, auth, dashboard, expenses, health, inventory, patients, visits
from clinic.security import SessionManager
from clinic.services.advice_service import AdviceService
from clinic.storage.base import Repositories
from clinic.storage.factory import build_repositories, build_store
from clinic.storage.kv import KeyValueStore
from clinic.storage.stats import StatsAggregator

logger = logging.getLogger(__name__)


def configure_state(app: FastAPI, settings: Settings, store: Optional[KeyValueStore] = None,
                    repositories: Optional[Repositories] = None,
                    advice_service: Optional[AdviceService] = None) -> None:
    """Attach the store, repositories and session context to ``app.state``."""
    store = store or build_store(settings)
    repositories = repositories or build_repositories(settings, store)
    app.state.settings = settings
    app.state.store = store
    app.state.repositories = repositories
    app.state.stats = StatsAggregator(repositories)
    app.state.sessions = SessionManager.from_settings(settings, store)
    app.state.advice = advice_service or AdviceService.from_settings(settings)
    logger.info(f"{settings.clinic_name}: {repositories.backend} persistence ready")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    log = setup_logging(settings.log_level, json_output=settings.log_json)
    log.info("app_configured", app=settings.app_name, environment=settings.environment)

    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)
    app.state.settings = settings

    # Lifespan for startup events
    @app.on_event("startup")
    async def on_startup():
        if getattr(app.state, "repositories", None) is None:
            configure_state(app, settings)

    @app.on_event("shutdown")
    async def on_shutdown():
        store = getattr(app.state, "store", None)
        if store is not None:
            await store.close()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(patients.router, prefix="/api/v1")
    app.include_router(visits.router, prefix="/api/v1")
    app.include_router(appointments.router, prefix="/api/v1")
    app.include_router(appointments.public_router, prefix="/api/v1")
    app.include_router(inventory.router, prefix="/api/v1")
    app.include_router(expenses.router, prefix="/api/v1")
    app.include_router(dashboard.router, prefix="/api/v1")
    app.include_router(advice.router, prefix="/api/v1")
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("clinic.main:app", host="0.0.0.0", port=8000, reload=get_settings().is_development)
