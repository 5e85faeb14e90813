"""Request ID middleware: generates or propagates X-Request-Id and logs one line per request."""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# Client-supplied ids end up in every log line
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

_QUIET_PATHS = frozenset({"/health", "/ready", "/version"})


def resolve_request_id(header: str | None) -> str:
    """Keep a well-formed client id, otherwise mint a UUID."""
    if header and _VALID_REQUEST_ID.match(header):
        return header
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind request context for structlog and echo X-Request-Id."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-Id"))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id

        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "request_finished",
                method=request.method,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response
