"""
FastAPI application factory.

Assembles the app, registers routers and exception handlers, and wires
the app-scoped collaborators (settings, token issuer) onto
``app.state``.  Database schema is managed by Alembic — NOT create_all.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.controllers.admin_controller import router as admin_router
from app.controllers.auth_controller import router as auth_router
from app.core.config import Settings, get_settings
from app.core.database import engine
from app.core.exceptions import register_exception_handlers
from app.core.security import TokenIssuer
from app.models import Base  # noqa: F401 — ensures all models are registered

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("app.access")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("%s started", _app.title)
    yield
    await engine.dispose()
    logger.info("Database engine disposed.")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_issuer = TokenIssuer.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        access_logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    register_exception_handlers(app)

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(admin_router, prefix=settings.API_PREFIX)

    # ── Health check ─────────────────────────────────────────────────
    @app.get(f"{settings.API_PREFIX}/health", tags=["Health"])
    async def health():
        return {"success": True, "message": "Server is running"}

    return app


app = create_app()
