"""
HTTP request logging middleware.

Each request gets a request id bound into structlog's context. Swap requests
also bind the trade they ask about, so the quote client's upstream warnings
can be traced back to the pair and taker. Health checks log at DEBUG.
"""

import time
import uuid
from typing import Dict

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger("http")

SWAP_PATH_PREFIX = "/api/swap/"
QUIET_PATHS = frozenset({"/healthz"})

# Query parameter -> log field
TRADE_FIELDS = {
    "sellToken": "sell_token",
    "buyToken": "buy_token",
    "sellAmount": "sell_amount",
    "taker": "taker",
}


def trade_context(request: Request) -> Dict[str, str]:
    """Trade identifiers of a swap request, empty for anything else."""
    if not request.url.path.startswith(SWAP_PATH_PREFIX):
        return {}
    return {
        field: request.query_params[param]
        for param, field in TRADE_FIELDS.items()
        if request.query_params.get(param)
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with timing, status and trade context."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4())[:8])

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, **trade_context(request))

        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                # 404 on a swap route is "no route", a normal market state
                log = logger.info if status_code == 404 else logger.warning
            elif request.url.path in QUIET_PATHS:
                log = logger.debug
            else:
                log = logger.info

            log(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=duration_ms,
            )
