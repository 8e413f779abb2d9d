from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class BaseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        arbitrary_types_allowed=True,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap", when_used="unless-none")
    def serialize_datetime(self, value, handler, info):
        """Custom serializer for datetime objects and enums"""
        result = handler(value)
        if isinstance(result, datetime):
            return result.timestamp()
        elif isinstance(result, Enum):
            return result.value
        return result


class PaginationIn(BaseModel):
    page: int = Field(default=1, ge=1)
    size: int = Field(default=20, ge=1, le=100)


T = TypeVar("T")


class PaginationOut(BaseSchema, Generic[T]):
    total: int = 0
    items: list[T] = []
    page: int = 1
    size: int = 20
