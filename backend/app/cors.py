"""
Permissive CORS for the notification endpoints.

Starlette's CORSMiddleware only decorates requests that carry an Origin
header and answers preflights with a plain-text "OK" body. These endpoints
are called from arbitrary front-ends and server-side scripts alike, so every
response carries the headers, unhandled crashes included, and every OPTIONS
request gets an empty 200.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.errors import UnknownError

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"
PREFLIGHT_MAX_AGE = 86400  # 24h


def cors_headers(allow_origin: str = "*") -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }


class PermissiveCORSMiddleware(BaseHTTPMiddleware):
    """Add CORS headers to every response and answer preflights directly."""

    def __init__(self, app, allow_origin: str = "*"):
        super().__init__(app)
        self.headers = cors_headers(allow_origin)

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(
                status_code=200,
                headers={**self.headers, "Access-Control-Max-Age": str(PREFLIGHT_MAX_AGE)},
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            # Exception handlers for bare Exception run outside this middleware,
            # so crashes are answered here to keep the CORS headers on them.
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            response = JSONResponse(
                status_code=500,
                content=UnknownError(str(exc) or type(exc).__name__).to_content(),
            )
        response.headers.update(self.headers)
        return response
