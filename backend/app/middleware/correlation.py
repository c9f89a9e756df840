# backend/app/middleware/correlation.py
"""
Correlation ID middleware for request tracing.

For each request the middleware:
1. Takes the ID from X-Correlation-ID, else X-Request-ID, else a new UUID4
2. Stores it in context so every log line of the request carries it
   (including lines logged by the price lookup worker threads)
3. Echoes it in the X-Correlation-ID response header

Incoming IDs end up in log lines, so only short IDs made of safe
characters are accepted; anything else is replaced by a generated one.

Usage:
    app.add_middleware(CorrelationIdMiddleware)

Client Usage:
    curl -H "X-Correlation-ID: my-trace-123" http://localhost:8000/users/gaben
"""

import logging
import re
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.utils.context import set_correlation_id, clear_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Letters, digits, '-', '_', '.', ':' and at most 128 characters
_VALID_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Assigns a correlation ID to every request and response."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        correlation_id = self._get_correlation_id(request)
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()

    @staticmethod
    def _get_correlation_id(request: Request) -> str:
        for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
            value = request.headers.get(header)
            if not value:
                continue
            if _VALID_ID.match(value):
                return value
            logger.debug(f"Ignoring malformed {header} header")

        return str(uuid.uuid4())
