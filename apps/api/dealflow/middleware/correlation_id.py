from __future__ import annotations

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from dealflow.context import normalize_correlation_id, reset_correlation_id, set_correlation_id

CORRELATION_HEADER = "x-correlation-id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind one correlation id per request and echo it on the response.

    Malformed inbound ids are replaced rather than propagated.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = normalize_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
