"""
HTTP client for the external linked-account service.

Client login accounts live in the identity provider; this module only
asks it to create, re-key or remove them.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from lexcore.core.simple_config import settings
from lexcore.services.providers import AccountProvider, AccountProviderError

logger = structlog.get_logger()


class HttpAccountProvider(AccountProvider):
    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> httpx.Response:
        try:
            async with self._client() as client:
                resp = await client.request(method, path, json=payload)
                resp.raise_for_status()
                return resp
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Account service rejected request",
                method=method,
                path=path,
                status_code=exc.response.status_code,
            )
            raise AccountProviderError(
                f"Account service returned {exc.response.status_code} for {method} {path}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Account service unreachable", method=method, path=path, error=str(exc))
            raise AccountProviderError(f"Account service request failed: {exc}") from exc

    async def provision_account(self, *, email: str, password: str, full_name: str) -> str:
        resp = await self._request(
            "POST",
            "/accounts",
            {"email": email, "password": password, "full_name": full_name, "role": "client"},
        )
        try:
            account_id = resp.json().get("id")
        except ValueError as exc:
            raise AccountProviderError("Account service returned an unreadable body") from exc
        if not account_id:
            raise AccountProviderError("Account service did not return an account id")
        logger.info("Client account provisioned", account_id=str(account_id), email=email)
        return str(account_id)

    async def update_account_password(self, account_id: str, password: str) -> None:
        await self._request("PUT", f"/accounts/{account_id}/password", {"password": password})
        logger.info("Client account password updated", account_id=account_id)

    async def delete_account(self, account_id: str) -> None:
        await self._request("DELETE", f"/accounts/{account_id}")
        logger.info("Client account deleted", account_id=account_id)


def build_account_provider() -> Optional[AccountProvider]:
    """The linked-account sub-API is optional; no URL means no provider."""
    if not settings.ACCOUNT_SERVICE_URL:
        return None
    return HttpAccountProvider(
        settings.ACCOUNT_SERVICE_URL,
        token=settings.ACCOUNT_SERVICE_TOKEN,
        timeout=settings.ACCOUNT_SERVICE_TIMEOUT_SECONDS,
    )
