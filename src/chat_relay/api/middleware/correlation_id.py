"""Correlation ids for log lines: one per HTTP request, one per WebSocket connection."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")

HEADER = "X-Request-ID"


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    token = correlation_id_ctx.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_ctx.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Takes ``X-Request-ID`` from the request (or makes one) and echoes it back."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        with correlation_scope(request.headers.get(HEADER) or uuid.uuid4().hex) as cid:
            response = await call_next(request)
            response.headers[HEADER] = cid
            return response


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` with the current request or connection id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get() or "-"
        return True
