"""Common Pydantic schemas."""

import math
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.timeutils import to_naive_utc

# ISO 8601 input, stored as naive UTC
UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    """Page metadata for list responses."""

    current_page: int = Field(..., ge=1, description="Current page number")
    total_pages: int = Field(..., ge=0, description="Number of pages")
    total_items: int = Field(..., ge=0, description="Number of matching items")
    items_per_page: int = Field(..., ge=1, description="Page size")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=math.ceil(total / limit) if total else 0,
            total_items=total,
            items_per_page=limit,
        )
