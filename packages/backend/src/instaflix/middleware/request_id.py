"""Request ID middleware — unique ID per request for tracing.

Every request gets an ID, either from the incoming X-Request-ID header or
freshly generated. It is bound to structlog's contextvars, together with
the method and path, so every auth log line for that request carries it,
and echoed in the response header.

Incoming IDs end up in logs verbatim, so anything longer than
MAX_REQUEST_ID_LENGTH or outside [A-Za-z0-9._-] is replaced.
"""

import re
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

MAX_REQUEST_ID_LENGTH = 128
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]+$")


def resolve_request_id(incoming: Optional[str]) -> str:
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and _SAFE_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
