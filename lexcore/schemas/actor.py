"""
Actor schema: the authenticated identity performing an action.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from lexcore.core.rbac import Role, parse_role
from lexcore.schemas.base import BaseSchema


class Actor(BaseSchema):
    id: str = Field(..., min_length=1)
    email: str = Field(default="")
    role: Role = Field(default=Role.CLIENT)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> str:
        return str(value) if value is not None else value

    @field_validator("role", mode="before")
    @classmethod
    def coerce_role(cls, value: Any) -> Role:
        # Unknown roles fail closed to the least-privileged role.
        return parse_role(value)
