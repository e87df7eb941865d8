"""
Sales Pulse — Request Middleware
==================================
The widget is embedded in a third-party iframe, so every endpoint is open
to any origin. Starlette's CORSMiddleware only answers well-formed
preflights; this middleware answers every OPTIONS request and logs
request timing.
"""
from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from salespulse.logger import setup_logger

logger = setup_logger("api_middleware")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class PreflightMiddleware(BaseHTTPMiddleware):
    """Short-circuits OPTIONS with 200 and logs method/path/status/duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s — %d in %.0fms",
            request.method, request.url.path, response.status_code, duration_ms,
        )
        return response
