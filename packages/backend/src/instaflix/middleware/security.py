"""Security headers middleware.

Adds standard response headers. Tokens travel in Authorization headers
and redirect URLs, so responses must not be framed or sniffed:
- X-Content-Type-Options: no MIME-type sniffing
- X-Frame-Options: no framing (clickjacking)
- Referrer-Policy: don't leak the ?token= redirect URL to third parties
- Cache-Control on auth responses: tokens must not be cached
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        if "/auth/" in request.url.path:
            response.headers["Cache-Control"] = "no-store"
        return response
