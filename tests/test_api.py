"""Tests for the HTTP surface, with the quote client and price provider stubbed out."""

from decimal import Decimal

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from launchpad.api.swap import get_quote_client
from launchpad.cache import PriceCache
from launchpad.config import settings
from launchpad.core.errors import FailureReason
from launchpad.core.execution import Call
from launchpad.core.swap import BuildQuote, BuildRequest, PriceQuote, QuoteBinding, QuoteFailure
from launchpad.main import app
from launchpad.providers.base import PriceProvider
from launchpad.services.prices import DONUT_COIN_ID, ETH_COIN_ID, PriceService, get_price_service


NATIVE = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
TOKEN = "0x1111111111111111111111111111111111111111"
ROUTER = "0x6666666666666666666666666666666666666666"
TAKER = "0x5555555555555555555555555555555555555555"
DONUT = settings.donut_address.lower()


@pytest.fixture
def quote_client():
    client = AsyncMock()
    app.dependency_overrides[get_quote_client] = lambda: client
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def price_provider():
    provider = AsyncMock(spec=PriceProvider)
    provider.name = "coingecko"
    provider.get_usd_prices.return_value = {ETH_COIN_ID: Decimal("3000"), DONUT_COIN_ID: Decimal("0.001")}
    return provider


@pytest.fixture
def http(quote_client, price_provider):
    app.dependency_overrides[get_price_service] = lambda: PriceService(PriceCache(), price_provider)
    return TestClient(app)


def unpriced_donut_quote() -> PriceQuote:
    """1 ETH for 2.4M DONUT with no aggregator USD values: $3000 in, $2400 out."""
    return PriceQuote(sell_amount=10**18, buy_amount=2_400_000 * 10**18)


def price_params(**overrides):
    params = {"sellToken": NATIVE, "buyToken": TOKEN, "sellAmount": str(10**18)}
    params.update(overrides)
    return params


class TestSwapPrice:

    def test_price(self, http, quote_client, price_provider):
        quote_client.get_price.return_value = PriceQuote(
            sell_amount=10**18,
            buy_amount=2 * 10**18,
            sell_amount_usd=Decimal("3500"),
            buy_amount_usd=Decimal("3490"),
            estimated_gas=150000,
            fee_amount=4 * 10**15,
            fee_token=NATIVE,
            route_summary={"amountIn": str(10**18)},
        )

        response = http.get("/api/swap/price", params=price_params())

        assert response.status_code == 200
        data = response.json()
        assert data["buyAmount"] == str(2 * 10**18)
        assert data["price"] == "2"
        assert data["fees"]["integratorFee"] == {"amount": str(4 * 10**15), "token": NATIVE}
        assert data["routeSummary"] == {"amountIn": str(10**18)}
        assert data["slippage"]["slippageBps"] == 300
        assert data["slippage"]["source"] == "aggregator"
        price_provider.get_usd_prices.assert_not_awaited()
        request = quote_client.get_price.await_args.args[0]
        assert request.sell_amount == 10**18

    def test_unpriced_trade_uses_local_valuation(self, http, quote_client):
        quote_client.get_price.return_value = unpriced_donut_quote()

        response = http.get("/api/swap/price", params=price_params(buyToken=DONUT))

        assert response.status_code == 200
        slippage = response.json()["slippage"]
        assert slippage["slippageBps"] == 2200
        assert Decimal(slippage["priceImpact"]) == 20
        assert slippage["source"] == "local"

    @pytest.mark.parametrize("missing", ["sellToken", "buyToken", "sellAmount"])
    def test_missing_params(self, http, missing):
        params = price_params()
        params.pop(missing)

        assert http.get("/api/swap/price", params=params).status_code == 400

    def test_invalid_amount(self, http):
        assert http.get("/api/swap/price", params=price_params(sellAmount="1.5")).status_code == 400

    def test_no_route_is_404(self, http, quote_client):
        quote_client.get_price.return_value = QuoteFailure(FailureReason.NO_ROUTE, "No route found")

        response = http.get("/api/swap/price", params=price_params())

        assert response.status_code == 404
        assert response.json()["detail"] == "No route found"

    def test_upstream_failure_is_502(self, http, quote_client):
        quote_client.get_price.return_value = QuoteFailure(FailureReason.UPSTREAM_UNAVAILABLE, "timeout", 504)

        assert http.get("/api/swap/price", params=price_params()).status_code == 502


class TestSwapQuote:

    def test_requires_taker(self, http, quote_client):
        response = http.get("/api/swap/quote", params=price_params())

        assert response.status_code == 400
        quote_client.get_build_quote.assert_not_awaited()

    def test_build_quote(self, http, quote_client):
        request = BuildRequest(sell_token=NATIVE, buy_token=TOKEN, sell_amount=10**18, slippage_bps=300, taker=TAKER)
        quote_client.get_build_quote.return_value = BuildQuote(
            sell_amount=10**18,
            buy_amount=2 * 10**18,
            transaction=Call(ROUTER, "0xabcd", 10**18),
            binding=QuoteBinding.of(request),
            deadline=1_700_001_200,
        )

        response = http.get("/api/swap/quote", params=price_params(taker=TAKER, slippageBps="300"))

        assert response.status_code == 200
        data = response.json()
        assert data["transaction"] == {"to": ROUTER, "data": "0xabcd", "value": str(10**18), "gas": "0"}
        assert data["issues"] == {}
        assert data["deadline"] == 1_700_001_200
        sent = quote_client.get_build_quote.await_args.args[0]
        assert sent.slippage_bps == 300
        assert sent.taker == TAKER
        assert data["slippageBps"] == 300
        quote_client.get_price.assert_not_awaited()

    def test_auto_slippage_when_omitted(self, http, quote_client):
        quote_client.get_price.return_value = unpriced_donut_quote()
        quote_client.get_build_quote.return_value = QuoteFailure(FailureReason.NO_ROUTE)

        response = http.get("/api/swap/quote", params=price_params(buyToken=DONUT, taker=TAKER))

        assert response.status_code == 404
        assert quote_client.get_build_quote.await_args.args[0].slippage_bps == 2200

    def test_auto_slippage_without_route(self, http, quote_client):
        quote_client.get_price.return_value = QuoteFailure(FailureReason.NO_ROUTE, "No route found")

        response = http.get("/api/swap/quote", params=price_params(taker=TAKER))

        assert response.status_code == 404
        quote_client.get_build_quote.assert_not_awaited()


class TestHealth:

    def test_root(self, http):
        response = http.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/healthz"

    def test_request_id_header(self, http):
        response = http.get("/", headers={"x-request-id": "abc123"})
        assert response.headers["x-request-id"] == "abc123"
