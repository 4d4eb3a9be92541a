from __future__ import annotations

import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from imobconnect.context import correlation_scope

HEADER_NAME = "x-correlation-id"
FALLBACK_HEADER_NAME = "x-request-id"
MAX_INBOUND_LENGTH = 128


def resolve_correlation_id(request: Request) -> str:
    for header in (HEADER_NAME, FALLBACK_HEADER_NAME):
        inbound = request.headers.get(header, "").strip()
        if inbound and len(inbound) <= MAX_INBOUND_LENGTH:
            return inbound
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = resolve_correlation_id(request)
        request.state.correlation_id = correlation_id
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        with correlation_scope(correlation_id):
            response = await call_next(request)

        response.headers[HEADER_NAME] = correlation_id
        return response
