"""Pagination dependencies for list endpoints."""

from fastapi import Query
from pydantic import BaseModel, Field

from examprep.core.config import settings

DEFAULT_PAGE_SIZE = 20
DEFAULT_LIMIT = 50


class PageParams(BaseModel):
    """Page-based pagination (session lists)."""

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class OffsetParams(BaseModel):
    """Limit/offset pagination (attempt lists)."""

    limit: int = Field(default=DEFAULT_LIMIT, ge=1)
    offset: int = Field(default=0, ge=0)


def page_params(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    per_page: int = Query(DEFAULT_PAGE_SIZE, ge=1, description="Items per page"),
) -> PageParams:
    """Dependency for page-based pagination; page size is capped, not rejected."""
    return PageParams(page=page, per_page=min(per_page, settings.ATTEMPTS_MAX_PAGE_SIZE))


def offset_params(
    limit: int = Query(DEFAULT_LIMIT, ge=1, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
) -> OffsetParams:
    """Dependency for limit/offset pagination; limit is capped, not rejected."""
    return OffsetParams(limit=min(limit, settings.ATTEMPTS_MAX_PAGE_SIZE), offset=offset)


def total_pages(total: int, per_page: int) -> int:
    return (total + per_page - 1) // per_page if per_page else 0
