"""FastAPI application entry point.

Wiring only: lifespan, exception handlers, routers. See firerest.core.lifespan
and firerest.core.exception_handlers.

Settings are loaded inside create_app() so that tests can set env (and
optionally clear get_settings cache) before calling create_app().
"""

from fastapi import FastAPI

from firerest.api.v1.router import api_router
from firerest.core.config import get_settings
from firerest.core.exception_handlers import register_exception_handlers
from firerest.core.lifespan import create_lifespan


def create_app() -> FastAPI:
    """Build and return the FastAPI application. Settings are resolved here (deferred from import)."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=create_lifespan,
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
