"""JSON error envelopes for everything that escapes a route handler."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from crawler.core.exceptions import CrawlerError, ErrorType
from crawler.schemas.fetch import ErrorResponse

logger = logging.getLogger(__name__)


def _debug_fields(request: Request, exc: BaseException) -> dict:
    if request.app.state.settings.is_production:
        return {}
    return {
        "message": str(exc),
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }


def _body_url(body) -> str | None:
    if isinstance(body, dict) and isinstance(body.get("url"), str):
        return body["url"]
    return None


async def crawler_error_handler(request: Request, exc: CrawlerError):
    logger.error(
        "Crawler error on %s %s (error_type=%s): %s",
        request.method,
        request.url.path,
        exc.error_type.value,
        exc.message,
    )
    body = ErrorResponse(
        error=exc.message or "Internal server error",
        error_type=exc.error_type.value,
        url=exc.url,
        **_debug_fields(request, exc),
    )
    return JSONResponse(status_code=exc.status_code, content=body.to_json())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    logger.warning("Malformed request on %s: %s", request.url.path, errors)
    body = ErrorResponse(
        error=f"Invalid request body: {location} {message}".replace("  ", " ").strip(),
        error_type=ErrorType.VALIDATION_ERROR.value,
        url=_body_url(exc.body),
    )
    return JSONResponse(status_code=400, content=body.to_json())


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Unknown paths and wrong methods both count as unknown routes
    if exc.status_code in (404, 405):
        logger.warning("Route not found: %s %s", request.method, request.url.path)
        body = ErrorResponse(
            error="Not found",
            error_type=ErrorType.NOT_FOUND.value,
            path=request.url.path,
        )
        return JSONResponse(status_code=404, content=body.to_json())

    body = ErrorResponse(error=str(exc.detail), error_type=ErrorType.UNKNOWN.value)
    return JSONResponse(status_code=exc.status_code, content=body.to_json())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = ErrorResponse(
        error=str(exc) or "Internal server error",
        error_type=ErrorType.UNKNOWN.value,
        **_debug_fields(request, exc),
    )
    return JSONResponse(status_code=500, content=body.to_json())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CrawlerError, crawler_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
