"""
Base Pydantic Schemas
Shared configuration, error envelope and field validators
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class ErrorResponse(BaseModel):
    """Body returned for unhandled server errors"""
    error: str
    message: str
    request_id: Optional[str] = Field(None, description="Correlates with the request log line")
    timestamp: datetime = Field(default_factory=utc_now)


def validate_non_empty_string(v: Any) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError("Must be a non-empty string")
    return v.strip()


def validate_email(v: Any) -> str:
    """Lower-cased, trimmed address; rejects anything without a dotted domain."""
    if not isinstance(v, str) or not EMAIL_PATTERN.match(v.strip()):
        raise ValueError("Invalid email format")
    return v.strip().lower()
