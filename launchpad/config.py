from decimal import Decimal
from pathlib import Path
from typing import Tuple

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Chain
    chain_id: int = Field(default=8453, description="Chain the engine operates on (Base)")
    chain_name: str = Field(default="base", description="Aggregator path segment for the chain")
    native_token_address: str = Field(
        default="0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE",
        description="Placeholder address aggregators use for the native asset",
    )
    rpc_url: str = Field(default="https://mainnet.base.org", description="JSON-RPC endpoint for chain reads")
    wallet_rpc_url: str = Field(
        default="",
        description="JSON-RPC endpoint of the connected wallet/provider",
    )

    # Contracts
    multicall_address: str = Field(
        default="0x21d30a9Fa2Eef611Dc42333C61c47018325531B1",
        description="Launchpad multicall router (mine / buy / launch)",
    )
    donut_address: str = Field(
        default="0xC9cFc47BE5A9DF6AB5acF82a4DEe71641D3e5753",
        description="Protocol token used to launch rigs",
    )

    # Swap Aggregator
    kyber_base_url: str = Field(
        default="https://aggregator-api.kyberswap.com",
        description="KyberSwap aggregator base URL",
    )
    kyber_client_id: str = Field(
        default="launchpad",
        description="Client id sent to KyberSwap",
        validation_alias=AliasChoices("kyber_client_id", "KYBER_CLIENT_ID", "X_CLIENT_ID"),
    )
    swap_fee_bps: int = Field(default=40, ge=0, le=1000, description="Protocol fee charged on the native leg")
    swap_fee_recipient: str = Field(
        default="0x0000000000000000000000000000000000000000",
        description="Fee recipient wallet address",
    )
    swap_deadline_seconds: int = Field(default=1200, ge=60, description="Build quote deadline from issuance")
    request_timeout_seconds: int = Field(default=20, description="Upstream HTTP timeout")

    # Slippage
    min_slippage_bps: int = Field(default=200, ge=0, description="Lower bound of auto slippage")
    max_slippage_bps: int = Field(default=4900, le=10000, description="Upper bound of auto slippage")

    # Prices
    coingecko_api_key: str = Field(default="", description="Coingecko API key")
    enable_coingecko: bool = Field(default=True, description="Enable Coingecko provider")
    price_cache_ttl_seconds: int = Field(default=60, ge=1, description="Freshness window for USD prices")
    default_eth_price_usd: Decimal = Field(default=Decimal("3500"), description="Fallback ETH/USD price")
    default_donut_price_usd: Decimal = Field(default=Decimal("0.001"), description="Fallback DONUT/USD price")

    # Wallet polling
    calls_status_poll_seconds: float = Field(default=1.0, gt=0, description="wallet_getCallsStatus poll interval")
    receipt_poll_seconds: float = Field(default=2.0, gt=0, description="Receipt poll interval")
    inclusion_timeout_seconds: int = Field(default=300, ge=1, description="Max wait for inclusion")

    # Settlement reconciliation (seconds after the immediate refresh)
    trade_settlement_delays: Tuple[float, ...] = Field(
        default=(2.0, 5.0),
        description="Refresh delays after a trade settles",
    )
    auction_settlement_delays: Tuple[float, ...] = Field(
        default=(1.0, 3.0, 6.0),
        description="Refresh delays after slower cross-service settlement",
    )

    @field_validator("trade_settlement_delays", "auction_settlement_delays")
    @classmethod
    def _check_delays(cls, value: Tuple[float, ...]) -> Tuple[float, ...]:
        if any(delay < 0 for delay in value):
            raise ValueError("settlement delays must be non-negative")
        return tuple(sorted(value))

    @property
    def has_coingecko_key(self) -> bool:
        return bool(self.coingecko_api_key)

    @property
    def has_wallet_rpc(self) -> bool:
        return bool(self.wallet_rpc_url)

    @property
    def kyber_routes_url(self) -> str:
        return f"{self.kyber_base_url.rstrip('/')}/{self.chain_name}/api/v1/routes"

    @property
    def kyber_build_url(self) -> str:
        return f"{self.kyber_base_url.rstrip('/')}/{self.chain_name}/api/v1/route/build"


# Global settings instance
settings = Settings()
