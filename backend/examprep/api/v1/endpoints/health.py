"""Health and readiness endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from examprep.core.errors import get_request_id
from examprep.core.logging import get_logger
from examprep.db.session import get_db
from examprep.models import TestSession

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: Literal["ok", "down"]
    checks: dict[str, str]
    request_id: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health_check() -> HealthResponse:
    """Process is alive."""
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Verifies database connectivity and that the session tables are migrated.",
)
async def readiness_check(
    request: Request,
    db: Session = Depends(get_db),
) -> ReadinessResponse:
    request_id = get_request_id(request)
    checks = {"db": "ok", "schema": "ok"}
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("readiness_db_down", exc_info=True)
        return ReadinessResponse(
            status="down", checks={"db": "down", "schema": "unknown"}, request_id=request_id
        )

    try:
        db.execute(select(TestSession.id).limit(1))
    except SQLAlchemyError:
        db.rollback()
        logger.warning("readiness_schema_missing", exc_info=True)
        checks["schema"] = "down"

    overall = "ok" if all(v == "ok" for v in checks.values()) else "down"
    return ReadinessResponse(status=overall, checks=checks, request_id=request_id)
