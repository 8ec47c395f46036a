import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from crawler.api.deps import get_page_fetcher, get_settings
from crawler.config import Settings
from crawler.core.exceptions import ErrorType, status_code_for
from crawler.schemas.fetch import ErrorResponse, FetchRequest, FetchSuccessResponse
from crawler.services.page_fetcher import FetchOptions, FetchResult, PageFetcher
from crawler.services.validator import validate_request

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/fetch",
    summary="Fetch a page through the headless browser",
    description="Navigate to the URL in an isolated browser context and return the raw, unmodified HTML together with the status code, response headers, final URL and load time.",
)
async def fetch(
    body: FetchRequest | None = None,
    fetcher: PageFetcher = Depends(get_page_fetcher),
    cfg: Settings = Depends(get_settings),
):
    body = body or FetchRequest()
    url = body.url
    opts = body.options

    logger.debug("Received fetch request for %s", url)

    validation = validate_request(
        url,
        {
            "timeout": opts.timeout if opts else None,
            "waitForSelector": opts.wait_for_selector if opts else None,
        },
    )
    if not validation.valid:
        logger.warning("Request validation failed for %s: %s", url, validation.error)
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error=validation.error,
                error_type=ErrorType.INVALID_URL.value,
                url=url if isinstance(url, str) else "",
            ).to_json(),
        )

    options = FetchOptions(
        timeout_ms=opts.timeout if opts and opts.timeout is not None else cfg.DEFAULT_TIMEOUT,
        wait_for_selector=opts.wait_for_selector if opts else None,
        wait_for_navigation=opts.wait_for_navigation if opts else True,
    )
    result = await fetcher.fetch_page(url.strip(), options)

    if isinstance(result, FetchResult):
        response = JSONResponse(
            status_code=200,
            content=FetchSuccessResponse.from_result(result).model_dump(by_alias=True),
        )
        if result.selector_found is not None:
            response.headers["X-Selector-Found"] = "true" if result.selector_found else "false"
        return response

    logger.warning(
        "Fetch request failed for %s (error_type=%s): %s",
        url,
        result.error_type.value,
        result.error,
    )
    return JSONResponse(
        status_code=status_code_for(result.error_type),
        content=ErrorResponse.from_fetch_error(
            result, include_debug=not cfg.is_production
        ).to_json(),
    )
