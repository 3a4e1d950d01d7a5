"""Account-aggregation API HTTP client (bank connections and their accounts)"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from billing_ledger.config import settings
from billing_ledger.domain.exceptions import IntegrationError
from billing_ledger.domain.models import AggregatedAccount, ConnectToken
from billing_ledger.infrastructure.observability.metrics import aggregator_failures_counter

logger = logging.getLogger(__name__)


class AggregatorClient:
    """Client for the external account-aggregation service"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        provider: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.aggregator_api_base).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.aggregator_api_key
        self.provider = provider or settings.aggregator_provider
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def get_accounts(self, item_id: str) -> List[AggregatedAccount]:
        """
        Fetch the accounts behind a connected item.

        Raises:
            IntegrationError: On timeout, HTTP errors, or invalid response
        """
        data = await self._request("GET", "/accounts", params={"itemId": item_id})
        try:
            return [
                AggregatedAccount(
                    id=str(item["id"]),
                    name=item["name"],
                    type=item["type"],
                    extra={k: v for k, v in item.items() if k not in ("id", "name", "type")},
                )
                for item in data.get("results", [])
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise self._failure("GET", "/accounts", e) from e

    async def create_connect_token(self, client_user_id: str, item_id: Optional[str] = None) -> ConnectToken:
        payload: Dict[str, Any] = {"clientUserId": client_user_id}
        if item_id is not None:
            payload["itemId"] = item_id

        data = await self._request("POST", "/connect_token", json=payload)
        try:
            token = data.get("connectToken") or data["accessToken"]
        except (KeyError, TypeError, AttributeError) as e:
            raise self._failure("POST", "/connect_token", e) from e
        return ConnectToken(connect_token=token, expires_at=data.get("expiresAt"))

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        headers = {"X-API-KEY": self.api_key, "Content-Type": "application/json"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise self._failure(method, path, e) from e

    def _failure(self, method: str, path: str, error: Exception) -> IntegrationError:
        """Log full context, count it, and hand back a provider-tagged error"""
        status = error.response.status_code if isinstance(error, httpx.HTTPStatusError) else None
        aggregator_failures_counter.labels(method=method).inc()
        logger.error(
            "Aggregation API call failed",
            extra={
                "provider": self.provider,
                "method": method,
                "url": f"{self.base_url}{path}",
                "status_code": status,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        return IntegrationError(self.provider)
