"""
FastAPI application for Kagikanri.

Exposes the password store, one-time codes, passkeys and git sync under
``/api``. Every route except login, status, logout and health requires a
session.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.auth import router as auth_router
from .api.health import router as health_router
from .api.otp import router as otp_router
from .api.passkeys import router as passkeys_router
from .api.passwords import router as passwords_router
from .api.sync import router as sync_router
from .config import Settings
from .errors import KagikanriError, SyncError
from .logging import get_logger
from .state import AppState

logger = get_logger("main")
api_logger = get_logger("api")


async def _periodic_sync(state: AppState, interval_minutes: int):
    """Background task: sync the store on a fixed interval."""
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            await state.trigger_sync()
        except SyncError as exc:
            # Recorded in the sync status; the next tick retries
            logger.warning(f"Periodic sync failed: {exc.message}")
        except Exception:
            logger.exception("Periodic sync failed unexpectedly")


def create_app(state: AppState) -> FastAPI:
    """Build the app around an already wired application context."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Kagikanri...")
        try:
            await state.trigger_sync()
        except SyncError as exc:
            logger.error(f"Initial git sync failed: {exc.message}")
        except Exception:
            logger.exception("Initial git sync failed unexpectedly")

        sync_task: Optional[asyncio.Task] = None
        interval = state.settings.git.sync_interval_minutes
        if interval > 0:
            sync_task = asyncio.create_task(_periodic_sync(state, interval))
        yield
        if sync_task is not None:
            sync_task.cancel()
        logger.info("Shutting down...")

    app = FastAPI(
        title="Kagikanri",
        description="Self-hosted password manager over pass with git sync",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.kagikanri = state

    @app.exception_handler(KagikanriError)
    async def handle_app_error(request: Request, exc: KagikanriError):
        if exc.status_code >= 500:
            api_logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.client_message, "status": exc.status_code},
        )

    app.include_router(health_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")
    app.include_router(passwords_router, prefix="/api")
    app.include_router(otp_router, prefix="/api")
    app.include_router(passkeys_router, prefix="/api")
    app.include_router(sync_router, prefix="/api")

    return app


def create_app_from_env() -> FastAPI:
    """Factory for ``uvicorn --factory kagikanri.main:create_app_from_env``."""
    return create_app(AppState.build(Settings.load()))
