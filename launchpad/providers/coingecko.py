from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.errors import UpstreamUnavailableError
from .base import PriceProvider


class CoingeckoProvider(PriceProvider):
    """Coingecko API provider for USD reference prices"""

    name = "coingecko"
    timeout_s = 15

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.api_key = settings.coingecko_api_key
        self.base_url = "https://api.coingecko.com/api/v3"
        self._client = client

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def ready(self) -> bool:
        return settings.enable_coingecko  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {
                "status": "unavailable",
                "reason": "Provider disabled"
            }

        try:
            response = await self._get_client().get(
                f"{self.base_url}/ping",
                headers=self._build_headers(),
            )
            response.raise_for_status()
            return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def get_usd_prices(self, coin_ids: List[str]) -> Dict[str, Decimal]:
        """Get current USD prices keyed by coin id; unknown ids are omitted"""
        if not coin_ids:
            return {}

        params = {
            "ids": ",".join(coin_ids),
            "vs_currencies": "usd",
        }

        try:
            response = await self._get_client().get(
                f"{self.base_url}/simple/price",
                headers=self._build_headers(),
                params=params,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailableError(
                f"Coingecko returned {e.response.status_code}",
                status_code=e.response.status_code,
                provider=self.name,
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise UpstreamUnavailableError(f"Coingecko request failed: {e}", provider=self.name) from e

        prices: Dict[str, Decimal] = {}
        for coin_id in coin_ids:
            price = (data.get(coin_id) or {}).get("usd")
            if price is not None:
                prices[coin_id] = Decimal(str(price))
        return prices

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
