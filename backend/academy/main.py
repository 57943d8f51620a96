"""
ASGI application for the Academy backend.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academy.core.config import settings
from academy.core.database import DatabaseManager, SessionLocal, check_database_connection, init_db
from academy.core.errors import register_exception_handlers
from academy.core.log import configure_logging
from academy.routers import api_router


configure_logging(settings.effective_log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.TESTING:
        DatabaseManager.create_all_tables()
        with SessionLocal() as db:
            init_db(db)
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} started")
    yield
    logger.info(f"{settings.PROJECT_NAME} shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description=settings.DESCRIPTION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan
    )

    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.BACKEND_CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        database_ok = check_database_connection()
        return {
            "status": "ok" if database_ok else "degraded",
            "database": database_ok,
            "version": settings.VERSION
        }

    return app


app = create_app()
