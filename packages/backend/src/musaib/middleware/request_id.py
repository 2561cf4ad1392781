"""Request ID middleware — correlate every log line of one portal request.

Learn: a proxy in front of the portal may already have tagged the request
with X-Request-ID. That value is reused only if it looks like an id
(short, no spaces or control characters); anything else is replaced by a
fresh uuid4 hex, so a client can't inject text into the logs.

The id, the method and the path are bound to structlog's contextvars, so
the store and auth events logged while handling the request carry them.
One "portal.request" line per request records the status and duration.
"""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

HEADER = "X-Request-ID"
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def incoming_request_id(request: Request) -> str:
    """The caller's request id if it is usable, else a new one."""
    sent = request.headers.get(HEADER, "")
    if _VALID_ID.match(sent):
        return sent
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for logging and echo it on the response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = incoming_request_id(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        logger.info(
            "portal.request",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers[HEADER] = request_id
        return response
