from decimal import Decimal

import pytest
from pydantic import ValidationError

from launchpad.config import Settings


def test_defaults_target_base():
    """Defaults point at Base and the production fee and slippage policy."""

    settings = Settings(_env_file=None)

    assert settings.chain_id == 8453
    assert settings.swap_fee_bps == 40
    assert settings.swap_deadline_seconds == 1200
    assert (settings.min_slippage_bps, settings.max_slippage_bps) == (200, 4900)
    assert settings.default_eth_price_usd == Decimal("3500")
    assert settings.kyber_routes_url == "https://aggregator-api.kyberswap.com/base/api/v1/routes"
    assert settings.kyber_build_url.endswith("/base/api/v1/route/build")


def test_kyber_client_id_alias(monkeypatch):
    """The aggregator client id also loads from the X_CLIENT_ID alias."""

    monkeypatch.delenv("KYBER_CLIENT_ID", raising=False)
    monkeypatch.setenv("X_CLIENT_ID", "launchpad-prod")

    settings = Settings(_env_file=None)

    assert settings.kyber_client_id == "launchpad-prod"


def test_settlement_delays_from_env(monkeypatch):
    """Delay schedules are JSON lists in the environment and come back sorted."""

    monkeypatch.setenv("AUCTION_SETTLEMENT_DELAYS", "[6, 1, 3]")

    settings = Settings(_env_file=None)

    assert settings.auction_settlement_delays == (1.0, 3.0, 6.0)


def test_negative_delay_rejected(monkeypatch):
    monkeypatch.setenv("TRADE_SETTLEMENT_DELAYS", "[-1, 2]")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_chain_name_drives_aggregator_path(monkeypatch):
    monkeypatch.setenv("CHAIN_NAME", "arbitrum")
    monkeypatch.setenv("KYBER_BASE_URL", "https://kyber.test/")

    settings = Settings(_env_file=None)

    assert settings.kyber_routes_url == "https://kyber.test/arbitrum/api/v1/routes"
