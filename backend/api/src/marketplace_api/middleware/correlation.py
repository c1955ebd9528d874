"""Correlation ID middleware.

API callers may send ``X-Correlation-ID``. MercadoPago webhook deliveries
carry ``x-request-id`` instead, which is reused so a delivery can be matched
against the gateway's own logs. The ID is echoed on every response.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from marketplace_core.utils.logging import correlation_scope

CORRELATION_ID_HEADER = "X-Correlation-ID"
GATEWAY_REQUEST_ID_HEADER = "x-request-id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get(CORRELATION_ID_HEADER) or request.headers.get(
            GATEWAY_REQUEST_ID_HEADER
        )
        with correlation_scope(incoming) as correlation_id:
            response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
