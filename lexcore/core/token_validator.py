"""
Bearer token validation.

Tokens are issued by the external identity provider; this service only
verifies them and reads the actor claims (``sub``, ``email``, ``role``).
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status
from joserfc import jwt as jose_jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey
import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class TokenValidationResult:
    subject: str
    claims: dict
    issuer: str


class TokenRejected(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class TokenValidationStrategy(ABC):
    @abstractmethod
    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        raise NotImplementedError


class SharedSecretJWTStrategy(TokenValidationStrategy):
    """HMAC-signed JWTs verified with the secret shared with the identity provider."""

    def __init__(self, secret_key: str, algorithm: str, issuer: str) -> None:
        self._key = OctKey.import_key(secret_key)
        self._algorithm = algorithm
        self._default_issuer = issuer

    def _decode(self, token: str) -> dict:
        try:
            return dict(jose_jwt.decode(token, self._key, algorithms=[self._algorithm]).claims)
        except (JoseError, ValueError) as exc:
            logger.warning("JWT verification failed", error=str(exc))
            raise TokenRejected("Could not validate credentials")

    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        claims = self._decode(token)

        # Identity-provider tokens may omit "type"; a present one must match
        kind = claims.get("type")
        if kind is not None and kind != token_type:
            logger.warning("Invalid token type", expected=token_type, actual=kind)
            raise TokenRejected("Invalid token type")

        subject = claims.get("sub")
        if not subject:
            logger.warning("Token missing subject")
            raise TokenRejected("Invalid token: missing subject")

        expires_at = claims.get("exp")
        if expires_at is not None:
            try:
                expires_at = float(expires_at)
            except (TypeError, ValueError):
                logger.warning("Token has malformed expiry", subject=subject, exp=repr(expires_at))
                raise TokenRejected("Invalid token: malformed expiry")
            if time.time() >= expires_at:
                logger.info("Token expired", subject=subject)
                raise TokenRejected("Token expired")

        return TokenValidationResult(
            subject=str(subject),
            claims=claims,
            issuer=claims.get("iss") or self._default_issuer,
        )


class IssuerAwareTokenValidator:
    """Wraps a strategy and rejects tokens whose issuer is not trusted."""

    def __init__(
        self,
        *,
        strategy: TokenValidationStrategy,
        trusted_issuers: Optional[list[str]] = None,
    ) -> None:
        self._strategy = strategy
        self._trusted_issuers = frozenset(trusted_issuers or ())

    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        result = self._strategy.validate(token, token_type=token_type)
        if self._trusted_issuers and result.issuer not in self._trusted_issuers:
            logger.warning("Token issuer is not trusted", issuer=result.issuer)
            raise TokenRejected("Untrusted token issuer")
        logger.debug("Token verified", subject=result.subject, issuer=result.issuer)
        return result
