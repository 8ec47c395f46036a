from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from crawler.services.page_fetcher import FetchError, FetchResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FetchOptionsIn(_CamelModel):
    # Left untyped so bad values reach the validator and come back as
    # INVALID_URL instead of a schema error
    timeout: Any = None
    wait_for_selector: Any = None
    wait_for_navigation: bool = True


class FetchRequest(BaseModel):
    url: Any = None
    options: FetchOptionsIn | None = None


class FetchSuccessResponse(_CamelModel):
    """Success envelope. Carries the page exactly as the browser rendered it."""

    success: bool = True
    status_code: int
    html: str
    headers: dict[str, str] = Field(default_factory=dict)
    url: str
    load_time: int

    @classmethod
    def from_result(cls, result: FetchResult) -> "FetchSuccessResponse":
        return cls(
            status_code=result.status_code,
            html=result.html,
            headers=result.headers,
            url=result.url,
            load_time=result.load_time_ms,
        )


class ErrorResponse(_CamelModel):
    success: bool = False
    error: str
    error_type: str
    url: str | None = None
    path: str | None = None
    # Debug fields, only outside production
    message: str | None = None
    stack: str | None = None

    @classmethod
    def from_fetch_error(cls, err: FetchError, include_debug: bool = False) -> "ErrorResponse":
        return cls(
            error=err.error,
            error_type=err.error_type.value,
            url=err.url,
            message=err.message if include_debug else None,
            stack=err.stack if include_debug else None,
        )

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class BrowserStatus(BaseModel):
    connected: bool
    version: str | None = None


class HealthResponse(BaseModel):
    status: str
    browser: BrowserStatus
    uptime: int
    timestamp: str
