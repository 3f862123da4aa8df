"""
Base schemas shared by the booking and wallet DTOs.

Responses are built straight from ORM records (``from_attributes``) and
exposed with camelCase keys; requests accept either spelling.
"""

from typing import Generic, List, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response for list reads (pages start at 1)."""

    items: List[T] = Field(description="List of items")
    total: int = Field(description="Total number of items")
    page: int = Field(default=1, description="Current page number", ge=1)
    per_page: int = Field(default=20, description="Items per page", ge=1, le=100)
    has_next: bool = Field(description="Whether there's a next page")
    has_prev: bool = Field(description="Whether there's a previous page")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def build(cls, items: Sequence[T], total: int, page: int, per_page: int) -> "PaginatedResponse[T]":
        return cls(
            items=list(items),
            total=total,
            page=page,
            per_page=per_page,
            has_next=page * per_page < total,
            has_prev=page > 1,
        )


def page_window(page: int, per_page: int) -> tuple[int, int]:
    """Translate 1-based page/per_page into (offset, limit)."""
    page = max(1, int(page))
    per_page = min(100, max(1, int(per_page)))
    return (page - 1) * per_page, per_page
