"""
TMS Service
GraphQL API for shipment tracking and user authentication
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import os
import subprocess
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from .api.graphql_schema import create_graphql_router
from .core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from .core_settings import Settings, get_settings
from .infrastructure.db import build_engine, build_session_factory, init_models

SERVICE_DESCRIPTION = "Transportation management GraphQL service"
PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = get_logger(__name__)

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response

def run_migrations(settings: Settings) -> None:
    logger.info("Running database migrations")
    result = subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        check=False,
        env={**os.environ, "DATABASE_URL": settings.database_url},
    )
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    setup_logging(
        service_name=settings.SERVICE_NAME,
        level=settings.LOG_LEVEL,
        environment=settings.ENVIRONMENT,
        version=settings.SERVICE_VERSION,
    )

    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")
        if settings.RUN_MIGRATIONS:
            run_migrations(settings)
        init_models(engine)
        logger.info("Database models initialized")

        yield

        logger.info(f"Shutting down {settings.SERVICE_NAME}")
        engine.dispose()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    health_service = ServiceHealth(settings.SERVICE_NAME, settings.SERVICE_VERSION)
    app.include_router(health_service.create_health_router())
    app.include_router(create_graphql_router(), prefix="/graphql", include_in_schema=False)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "graphql": "/graphql",
            "health": "/health",
        }

    return app

app = create_app()
