"""
HTTP middleware for the claims API.
Adds security headers and request audit logging.
"""

import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from roadside.core.config import settings
from roadside.core.logging import get_logger

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Voice input is captured by the front-end
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(self), camera=()"

        if not settings.DEBUG:
            response.headers["Content-Security-Policy"] = "default-src 'self'"

        return response


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log conversational turns and failed requests.
    """

    TURN_SUFFIX = "/messages"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        path = request.url.path
        is_turn = request.method == "POST" and path.endswith(self.TURN_SUFFIX)

        log_data = {
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": request.client.host if request.client else "unknown",
        }

        if response.status_code >= 500:
            logger.warning(f"API Request: {log_data}")
        elif is_turn or response.status_code >= 400:
            logger.info(f"API Request: {log_data}")

        return response
