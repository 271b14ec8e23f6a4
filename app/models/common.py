"""Shared request/response models: pagination and response envelopes."""
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

from app.config import settings


T = TypeVar("T")


class PageParams(BaseModel):
    """Pagination query parameters (1-based page)."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default_factory=lambda: settings.default_page_size, ge=1)

    @field_validator("limit")
    @classmethod
    def cap_limit(cls, v: int) -> int:
        if v > settings.max_page_size:
            raise ValueError(f"limit must be at most {settings.max_page_size}")
        return v

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    """Pagination block of a list response."""

    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")

    model_config = {"populate_by_name": True}


class Envelope(BaseModel, Generic[T]):
    """Success envelope for a single entity."""

    success: bool = True
    data: T


class PageEnvelope(BaseModel, Generic[T]):
    """Success envelope for a paginated list."""

    success: bool = True
    items: list[T]
    pagination: Pagination
