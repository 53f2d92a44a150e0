from fastapi import APIRouter
from typing import Dict, Any
from ..providers.chain import RpcChainReader
from ..providers.coingecko import CoingeckoProvider
from ..providers.kyberswap import KyberSwapProvider

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    providers = {
        "kyberswap": KyberSwapProvider(),
        "coingecko": CoingeckoProvider(),
        "chain": RpcChainReader(),
    }

    provider_status = {}
    for name, provider in providers.items():
        try:
            provider_status[name] = await provider.health_check()
        finally:
            await provider.close()

    all_healthy = all(
        status["status"] in ["healthy", "unavailable"]
        for status in provider_status.values()
    )

    available_providers = sum(
        1 for status in provider_status.values()
        if status["status"] == "healthy"
    )

    return {
        "status": "healthy" if all_healthy and available_providers > 0 else "degraded",
        "providers": provider_status,
        "available_providers": available_providers,
        "total_providers": len(provider_status)
    }
