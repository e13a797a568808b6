"""Application lifespan: startup and shutdown.

Single place for startup/shutdown wiring. The Firebase backend decision is
made here once and stored on app.state; routes reach it through
firerest.api.v1.dependencies.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from firerest.core.config import get_settings
from firerest.infrastructure.firebase.client import select_backend
from firerest.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup: logging, shared HTTP client, Firebase backend selection.
    Shutdown: backend close (native app / transport), shared HTTP client close.
    """
    settings = get_settings()
    setup_logging()

    # ---- Startup ----
    # Shared HTTP client for Firestore and Identity Toolkit calls (connection reuse).
    app.state.firebase_http_client = httpx.AsyncClient(
        timeout=settings.firebase_request_timeout_seconds
    )
    app.state.firebase = select_backend(settings, http_client=app.state.firebase_http_client)
    logger.info("Firebase backend ready: %s", app.state.firebase.mode.value)

    yield

    # ---- Shutdown ----
    if getattr(app.state, "firebase", None) is not None:
        await app.state.firebase.aclose()
        app.state.firebase = None
        logger.info("Firebase backend closed")

    if getattr(app.state, "firebase_http_client", None) is not None:
        await app.state.firebase_http_client.aclose()
        app.state.firebase_http_client = None
        logger.info("Firebase HTTP client closed")
