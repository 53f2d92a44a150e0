"""Tests for structlog setup and request logging."""

import logging

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from launchpad.config import settings
from launchpad.logging_config import QUIET_LOGGERS, add_chain_context, setup_logging
from launchpad.middleware import RequestLoggingMiddleware
from launchpad.middleware.logging_middleware import trade_context


TOKEN = "0x1111111111111111111111111111111111111111"
TAKER = "0x5555555555555555555555555555555555555555"


def make_request(path: str, query: str = "") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": query.encode(),
        "headers": [],
    })


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def context_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/api/swap/price")
    async def price():
        return structlog.contextvars.get_contextvars()

    @app.get("/healthz")
    async def health():
        return structlog.contextvars.get_contextvars()

    return app


class TestLoggingConfig:

    def test_chain_context_added(self):
        event = add_chain_context(None, "info", {"event": "quote"})
        assert event["chain_id"] == settings.chain_id

    def test_chain_context_keeps_explicit_value(self):
        event = add_chain_context(None, "info", {"event": "quote", "chain_id": 1})
        assert event["chain_id"] == 1

    def test_setup_logging_levels(self, restore_root_logger):
        setup_logging("DEBUG", json_logs=True)

        assert logging.getLogger().level == logging.DEBUG
        assert len(logging.getLogger().handlers) == 1
        for name, level in QUIET_LOGGERS.items():
            assert logging.getLogger(name).level == level

        setup_logging("ERROR")
        assert logging.getLogger("httpx").level == logging.ERROR


class TestRequestContext:

    def test_trade_context_for_swap_routes(self):
        request = make_request("/api/swap/quote", f"sellToken={TOKEN}&buyToken={TOKEN}&taker={TAKER}")

        assert trade_context(request) == {"sell_token": TOKEN, "buy_token": TOKEN, "taker": TAKER}

    def test_no_trade_context_elsewhere(self):
        assert trade_context(make_request("/healthz", f"sellToken={TOKEN}")) == {}

    def test_middleware_binds_request_and_trade(self):
        client = TestClient(context_app())

        response = client.get(
            "/api/swap/price",
            params={"sellToken": TOKEN, "sellAmount": "100"},
            headers={"x-request-id": "req-1"},
        )

        assert response.headers["x-request-id"] == "req-1"
        assert response.json() == {"request_id": "req-1", "sell_token": TOKEN, "sell_amount": "100"}

    def test_context_does_not_leak_between_requests(self):
        client = TestClient(context_app())
        client.get("/api/swap/price", params={"taker": TAKER})

        response = client.get("/healthz", headers={"x-request-id": "req-2"})

        assert response.json() == {"request_id": "req-2"}
