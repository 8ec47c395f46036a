from enum import Enum


class ErrorType(str, Enum):
    INVALID_URL = "INVALID_URL"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TIMEOUT = "TIMEOUT"
    NAVIGATION_ERROR = "NAVIGATION_ERROR"
    BROWSER_ERROR = "BROWSER_ERROR"
    UNKNOWN = "UNKNOWN"
    NOT_FOUND = "NOT_FOUND"


_STATUS_CODES = {
    ErrorType.INVALID_URL: 400,
    ErrorType.VALIDATION_ERROR: 400,
    ErrorType.NOT_FOUND: 404,
    ErrorType.BROWSER_ERROR: 503,
}


def status_code_for(error_type: ErrorType) -> int:
    """HTTP status code mirroring an error type (500 unless listed)."""
    return _STATUS_CODES.get(ErrorType(error_type), 500)


class CrawlerError(Exception):
    """Base error for the crawler service."""

    error_type: ErrorType = ErrorType.UNKNOWN

    def __init__(
        self,
        message: str,
        error_type: ErrorType | None = None,
        status_code: int | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        if error_type is not None:
            self.error_type = error_type
        self.status_code = status_code or status_code_for(self.error_type)
        self.url = url


class LaunchError(CrawlerError):
    """Raised when the browser process cannot be started."""

    error_type = ErrorType.BROWSER_ERROR


class NavigationError(CrawlerError):
    """Raised when navigation produced no response."""

    error_type = ErrorType.NAVIGATION_ERROR
