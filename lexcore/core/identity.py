"""
Identity provider seam.

Sign-in, sign-out and token issuance belong to the external identity
provider. The core only asks it for the current actor and whether a
session is established, and subscribes to changes of either.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from lexcore.core.token_validator import IssuerAwareTokenValidator, SharedSecretJWTStrategy
from lexcore.schemas.actor import Actor

logger = structlog.get_logger()


class SessionStatus(str, Enum):
    PENDING = "pending"
    NONE = "none"
    ESTABLISHED = "established"


IdentityListener = Callable[[SessionStatus, Optional[Actor]], None]


class IdentityProvider(ABC):
    @abstractmethod
    def session_status(self) -> SessionStatus:
        raise NotImplementedError

    @abstractmethod
    def get_current_actor(self) -> Optional[Actor]:
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register for session changes; returns an unsubscribe callable."""
        raise NotImplementedError


class InMemoryIdentityProvider(IdentityProvider):
    """Process-local identity state driven through a sign-in/sign-out side channel."""

    def __init__(self, actor: Optional[Actor] = None, *, pending: bool = False) -> None:
        self._actor = actor
        self._status = SessionStatus.PENDING if pending else (
            SessionStatus.ESTABLISHED if actor else SessionStatus.NONE
        )
        self._listeners: list[IdentityListener] = []

    def session_status(self) -> SessionStatus:
        return self._status

    def get_current_actor(self) -> Optional[Actor]:
        return self._actor if self._status == SessionStatus.ESTABLISHED else None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def mark_pending(self) -> None:
        self._status = SessionStatus.PENDING
        self._notify()

    def sign_in(self, actor: Actor) -> None:
        self._actor = actor
        self._status = SessionStatus.ESTABLISHED
        logger.info("Actor signed in", actor_id=actor.id, role=actor.role)
        self._notify()

    def sign_out(self) -> None:
        actor_id = self._actor.id if self._actor else None
        self._actor = None
        self._status = SessionStatus.NONE
        logger.info("Actor signed out", actor_id=actor_id)
        self._notify()

    def _notify(self) -> None:
        actor = self.get_current_actor()
        for listener in list(self._listeners):
            try:
                listener(self._status, actor)
            except Exception as exc:  # noqa: BLE001
                logger.error("Identity listener failed", error=str(exc))


class BearerTokenIdentity:
    """Resolves the actor of a single HTTP request from its bearer token."""

    def __init__(self, validator: IssuerAwareTokenValidator) -> None:
        self._validator = validator

    def resolve(self, token: Optional[str]) -> Optional[Actor]:
        """Return the actor for ``token``; ``None`` when no token was sent.

        An invalid token raises the validator's 401.
        """
        if not token:
            return None
        result = self._validator.validate(token, token_type="access")
        try:
            return Actor(
                id=result.subject,
                email=result.claims.get("email", ""),
                role=result.claims.get("role"),
            )
        except ValidationError as exc:
            logger.warning("Token claims do not describe an actor", subject=result.subject, error=str(exc))
            return None


def build_bearer_identity() -> BearerTokenIdentity:
    from lexcore.core.simple_config import JWT_CONFIG

    return BearerTokenIdentity(
        IssuerAwareTokenValidator(
            strategy=SharedSecretJWTStrategy(
                secret_key=JWT_CONFIG["secret_key"],
                algorithm=JWT_CONFIG["algorithm"],
                issuer=JWT_CONFIG["issuer"],
            ),
            trusted_issuers=JWT_CONFIG["trusted_issuers"],
        )
    )
