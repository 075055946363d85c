"""
FastAPI application for the taste engine.

    uvicorn api.app:app --host 0.0.0.0 --port 8080
    uvicorn api.app:create_app --factory --reload      # development

The in-memory backend keeps identities per process. Run one worker unless
STORAGE_BACKEND resolves to supabase.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import advisory, events, health, identity, ranking
from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import REQUEST_ID_HEADER, RequestTracingMiddleware
from services.providers import get_coordinator, reset_services


logger = get_logger(__name__)

ROUTERS = (
    health.router,
    identity.router,
    events.router,
    advisory.router,
    ranking.router,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    # Build the stores now so a broken Supabase config fails at boot
    coordinator = get_coordinator()
    logger.info(
        "Taste engine starting",
        environment=settings.environment,
        storage=coordinator.identities.get_stats()["backend"],
        anchor_hold_days=settings.anchor_hold_days,
        advisory_level=settings.advisory_level,
    )

    yield

    logger.info("Taste engine stopping")
    reset_services()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Taste Engine API",
        description=(
            "Style identity bootstrap, vote reinforcement with anchor holds, "
            "advisory verdicts with a self-tuning tolerance, and deterministic "
            "catalog ranking and profile naming."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    # First added is outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestTracingMiddleware)

    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()
