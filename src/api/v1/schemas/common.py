"""Common Pydantic schemas shared across the API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema that reads snake_case or camelCase and writes camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """Standardized error response."""

    status_code: int = Field(..., serialization_alias="statusCode")
    message: str
    error: str
    error_code: str
    details: Any | None = None


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str
