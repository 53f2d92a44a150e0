"""Async client for the KyberSwap aggregator API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .base import Provider
from ..config import settings
from ..core.errors import NoRouteError, UpstreamUnavailableError


logger = logging.getLogger(__name__)

# Aggregator codes meaning "this pair/amount has no usable route"
NO_ROUTE_CODES = {4008, 4010, 4011}


class KyberSwapProvider(Provider):
    """Thin wrapper around the routes and route/build endpoints."""

    name = "kyberswap"

    def __init__(
        self,
        *,
        routes_url: Optional[str] = None,
        build_url: Optional[str] = None,
        client_id: Optional[str] = None,
        timeout_s: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.routes_url = routes_url or settings.kyber_routes_url
        self.build_url = build_url or settings.kyber_build_url
        self.client_id = client_id or settings.kyber_client_id
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "x-client-id": self.client_id,
        }

    async def ready(self) -> bool:
        return bool(self.routes_url and self.build_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Aggregator not configured"}
        return {"status": "healthy", "routes_url": self.routes_url}

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.RequestError as exc:
            raise UpstreamUnavailableError(f"KyberSwap request failed: {exc}", provider=self.name) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        code = payload.get("code") if isinstance(payload, dict) else None
        message = (payload.get("message") if isinstance(payload, dict) else None) or response.reason_phrase

        if code in NO_ROUTE_CODES:
            raise NoRouteError(message or "No route found", details={"code": code})
        if response.status_code >= 400 or code != 0:
            raise UpstreamUnavailableError(
                message or "KyberSwap error",
                status_code=response.status_code,
                provider=self.name,
                details={"code": code},
            )
        return payload.get("data") or {}

    async def get_route(self, params: Dict[str, str]) -> Dict[str, Any]:
        """Resolve a route; returns the ``routeSummary`` object."""
        data = await self._request("GET", self.routes_url, params=params)
        route_summary = data.get("routeSummary")
        if not route_summary:
            raise NoRouteError("No route found")
        return route_summary

    async def build_route(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Turn a route summary into a signable transaction."""
        data = await self._request("POST", self.build_url, json=payload)
        if not data.get("routerAddress") or not data.get("data"):
            raise UpstreamUnavailableError("Build response missing transaction data", provider=self.name)
        return data

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
