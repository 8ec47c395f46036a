"""Request ID and access logging.

Every request gets an id (the caller's X-Request-ID, or a short random one)
held in a ContextVar, so log lines emitted while serving it, including the
page fetcher's, carry the same ``request_id``. The id is echoed back in the
response and one access line is logged per request.
"""

import contextvars
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("crawler.access")

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        token = request_id_var.set(rid)
        start = time.monotonic()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            logger.info(
                "%s %s -> %d",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": int((time.monotonic() - start) * 1000),
                },
            )
            return response
        finally:
            request_id_var.reset(token)


def get_request_id() -> str:
    """Current request id, or an empty string outside a request."""
    return request_id_var.get()
