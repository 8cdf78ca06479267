import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import async_session_factory, init_db
from .errors import register_error_handlers
from .routers import admin, analysis, auth, challenges, health, invitations, leaderboard, profiles, sponsors, submissions
from .services.submission_store import SubmissionStore
from .timeutils import utcnow

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()
    sweep_task = asyncio.create_task(_stale_analysis_loop())
    yield
    sweep_task.cancel()
    with suppress(asyncio.CancelledError):
        await sweep_task


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.cors_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(profiles.router, prefix=settings.api_prefix)
    app.include_router(admin.router, prefix=settings.api_prefix)
    app.include_router(invitations.router, prefix=settings.api_prefix)
    app.include_router(challenges.router, prefix=settings.api_prefix)
    # before submissions so /submissions/{id} does not swallow /submissions/analyze
    app.include_router(analysis.router, prefix=settings.api_prefix)
    app.include_router(submissions.router, prefix=settings.api_prefix)
    app.include_router(leaderboard.router, prefix=settings.api_prefix)
    app.include_router(sponsors.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/healthz")
    async def healthcheck():
        return {"status": "ok"}

    return app


async def _stale_analysis_loop() -> None:
    interval = max(30, settings.stale_analysis_sweep_interval_seconds)
    store = SubmissionStore(async_session_factory)
    try:
        while True:
            await asyncio.sleep(interval)
            cutoff = utcnow() - timedelta(minutes=max(1, settings.stale_analysis_minutes))
            try:
                released = await store.release_stale_claims(cutoff=cutoff)
                if released:
                    logger.warning("Marked %s stale analysis claims as failed", released)
            except Exception:  # noqa: BLE001
                logger.exception("Stale analysis sweep failed")
    except asyncio.CancelledError:
        logger.debug("Stale analysis sweep cancelled")
        raise


app = create_app()
