"""
HTTP request logging middleware.

Binds the request id and the chain/network/transaction being acted on to the
structlog context, so poll, cancel and RPC log lines emitted while handling a
call can be traced back to it, then logs one summary line per call.
"""

import json
import time
import uuid
from typing import Any, Dict

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger("gateway.http")

# Request fields worth carrying on every log line, keyed by their log name
CONTEXT_FIELDS = {
    "chain": "chain",
    "network": "network",
    "txHash": "tx_hash",
    "address": "address",
    "nonce": "nonce",
    "spender": "spender",
}


async def request_context(request: Request) -> Dict[str, Any]:
    """Pick the gateway fields out of the query string or JSON body."""
    params: Dict[str, Any] = dict(request.query_params)
    if request.method == "POST":
        try:
            body = json.loads(await request.body() or b"{}")
        except ValueError:
            body = None
        if isinstance(body, dict):
            params.update(body)

    return {
        log_name: params[field]
        for field, log_name in CONTEXT_FIELDS.items()
        if isinstance(params.get(field), (str, int)) and not isinstance(params.get(field), bool)
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log gateway calls with their chain context, status and timing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4())[:8])
        context = await request_context(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, **context)

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
                log = logger.warning
            else:
                log = logger.info

            # Set by the GatewayError handler
            error_code = getattr(request.state, "error_code", None)

            log(
                "gateway_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=duration_ms,
                **({"error_code": error_code} if error_code is not None else {}),
            )
            structlog.contextvars.clear_contextvars()
