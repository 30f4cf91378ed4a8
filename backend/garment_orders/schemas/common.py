"""Shared response schemas."""

from math import ceil
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Page of results with pagination metadata."""

    items: list[T] = Field(default_factory=list, description="Page items")
    total: int = Field(..., ge=0, description="Total matching rows")
    page: int = Field(..., ge=1, description="Current page number")
    page_size: int = Field(..., ge=1, description="Rows per page")
    total_pages: int = Field(..., ge=0, description="Total number of pages")

    @classmethod
    def build(cls, items: list[Any], total: int, page: int, page_size: int):
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=ceil(total / page_size) if total else 0,
        )


class ErrorResponse(BaseModel):
    """Error body returned for every rejected request."""

    error: str = Field(..., description="Error class name")
    code: str = Field(..., description="Stable error code")
    message: str = Field(..., description="Human-readable message")
    details: dict[str, Any] = Field(default_factory=dict, description="Error context")
    request_id: Optional[str] = Field(None, description="Correlation id")
