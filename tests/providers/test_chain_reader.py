"""Tests for the JSON-RPC chain reader."""

import json

import httpx
import pytest

from launchpad.core.errors import UpstreamUnavailableError
from launchpad.core.execution import encode_allowance_call
from launchpad.providers.chain import RpcChainReader


TOKEN = "0x1111111111111111111111111111111111111111"
OWNER = "0x5555555555555555555555555555555555555555"
SPENDER = "0x2222222222222222222222222222222222222222"


def make_reader(handler) -> RpcChainReader:
    return RpcChainReader(
        rpc_url="http://rpc.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_get_allowance_uses_eth_call():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x" + format(1234, "064x")})

    reader = make_reader(handler)

    assert await reader.get_allowance(TOKEN, OWNER, SPENDER) == 1234
    assert seen[0]["method"] == "eth_call"
    tx, block = seen[0]["params"]
    assert block == "latest"
    assert tx["data"] == encode_allowance_call(TOKEN, OWNER, SPENDER).payload


@pytest.mark.asyncio
async def test_rpc_error_is_upstream_unavailable():
    reader = make_reader(
        lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "header not found"}})
    )

    with pytest.raises(UpstreamUnavailableError):
        await reader.get_allowance(TOKEN, OWNER, SPENDER)


@pytest.mark.asyncio
async def test_health_check_reports_block():
    reader = make_reader(lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x10"}))

    assert await reader.health_check() == {"status": "healthy", "block": 16}
