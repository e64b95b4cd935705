"""
Access check schemas exposed to the view layer.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from lexcore.schemas.actor import Actor
from lexcore.schemas.base import BaseSchema


class GuardState(str, Enum):
    CHECKING = "checking"
    DENIED = "denied"
    GRANTED = "granted"


class DenialReason(str, Enum):
    NO_SESSION = "no_session"
    UNAUTHORIZED = "unauthorized"


class AccessCheckRequest(BaseSchema):
    capabilities: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)
    inline: bool = Field(default=False, description="Evaluate with inline-fragment policy")


class GuardDecision(BaseSchema):
    state: GuardState
    reason: Optional[DenialReason] = None
    redirect_to: Optional[str] = None
    notice: Optional[str] = None


class NavigationEntry(BaseSchema):
    title: str
    path: str
    capabilities: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)


class ActorAccessSummary(BaseSchema):
    actor: Actor
    full_access: bool
    capabilities: list[str] = Field(default_factory=list)
    navigation: list[NavigationEntry] = Field(default_factory=list)
