"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from examprep.api.v1.router import api_router
from examprep.common.request_id import RequestIDMiddleware
from examprep.core.config import settings
from examprep.core.errors import (
    general_exception_handler,
    http_exception_handler,
    storage_exception_handler,
    validation_exception_handler,
)
from examprep.core.logging import get_logger, setup_logging
from examprep.db.base import Base
from examprep.db.engine import engine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    # Outside dev/test the schema comes from alembic revision 001_create_test_engine_tables
    if settings.ENV in ("dev", "test"):
        Base.metadata.create_all(bind=engine)
    logger.info(
        "app_started",
        extra={
            "env": settings.ENV,
            "session_max_questions": settings.SESSION_MAX_QUESTIONS,
            "default_question_time_seconds": settings.DEFAULT_QUESTION_TIME_SECONDS,
        },
    )
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Timed test-session engine: composition, lifecycle and response recording",
        openapi_url="/openapi.json" if settings.ENV != "prod" else None,
        docs_url="/docs" if settings.ENV != "prod" else None,
        redoc_url="/redoc" if settings.ENV != "prod" else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - first added is outermost)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint - API information."""
        return {
            "message": settings.PROJECT_NAME,
            "version": "1.0.0",
            "api_prefix": settings.API_PREFIX,
            "docs_url": "/docs" if settings.ENV != "prod" else None,
        }

    return app


app = create_app()
