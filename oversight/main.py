"""Oversight API application factory.

Run locally with: uvicorn oversight.main:app --reload
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from oversight import __version__
from oversight.core.config import Settings, get_settings
from oversight.core.logging import configure_structlog
from oversight.core.middleware import RequestIdMiddleware, SecurityHeadersMiddleware
from oversight.core.sentry import init_sentry
from oversight.scans.router import get_job_store
from oversight.scans.router import router as scans_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    # Only close the shared store if a request actually built it.
    if get_job_store.cache_info().currsize:
        await get_job_store().close()
        get_job_store.cache_clear()


def _install_middleware(_app: FastAPI, settings: Settings) -> None:
    # Starlette runs the last-added middleware first: request IDs are bound
    # before anything else executes, and CORS sits closest to the routes.
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _app.add_middleware(SecurityHeadersMiddleware)
    _app.add_middleware(RequestIdMiddleware)


def create_app() -> FastAPI:
    settings = get_settings()

    # Before anything can log or raise.
    configure_structlog(debug=settings.debug)
    init_sentry(settings.sentry_dsn, environment=settings.environment)

    _app = FastAPI(
        title="Oversight API",
        description="On-demand repository security scans for the operator dashboard",
        version=__version__,
        lifespan=lifespan,
    )
    _install_middleware(_app, settings)

    @_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    _app.include_router(scans_router)
    return _app


app = create_app()
