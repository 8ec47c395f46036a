import asyncio
import logging
import random
import time
import traceback
from dataclasses import dataclass, field

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from crawler.core.exceptions import CrawlerError, ErrorType, NavigationError
from crawler.core.metrics import (
    active_page_contexts,
    fetch_duration_seconds,
    fetch_requests_total,
    proxy_fallbacks_total,
)
from crawler.services.browser import BrowserManager
from crawler.services.fingerprints import FingerprintPool, FingerprintProfile, fingerprint_pool
from crawler.services.proxy import ProxyConfig, ProxyResolver
from crawler.services.stealth import NavigatorOverrides, build_extra_headers, build_stealth_script

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000
HUMAN_DELAY_MS = (100, 500)

_PROXY_TUNNEL_MARKERS = (
    "ERR_TUNNEL_CONNECTION_FAILED",
    "ERR_PROXY_CONNECTION_FAILED",
    "Proxy tunneling failed",
)

_BROWSER_GONE_MARKERS = (
    "browser has been closed",
    "target page, context or browser has been closed",
    "target closed",
    "browser closed",
    "connection closed",
)


@dataclass(frozen=True)
class FetchOptions:
    timeout_ms: float = DEFAULT_TIMEOUT_MS
    wait_for_selector: str | None = None
    wait_for_navigation: bool = True


@dataclass
class FetchResult:
    status_code: int
    html: str
    headers: dict[str, str]
    url: str
    load_time_ms: int
    # None when no selector was requested
    selector_found: bool | None = None
    success: bool = field(default=True, init=False)


@dataclass
class FetchError:
    error_type: ErrorType
    error: str
    url: str
    message: str = ""
    stack: str = ""
    success: bool = field(default=False, init=False)


def is_proxy_tunnel_error(exc: BaseException) -> bool:
    msg = str(exc)
    return any(marker in msg for marker in _PROXY_TUNNEL_MARKERS)


def classify_error(exc: BaseException) -> ErrorType:
    """Map a fetch failure to an ErrorType.

    Typed errors are trusted first; message matching is only the fallback
    for opaque Playwright/driver errors.
    """
    if isinstance(exc, CrawlerError):
        return exc.error_type
    if isinstance(exc, (PlaywrightTimeoutError, asyncio.TimeoutError)):
        return ErrorType.TIMEOUT

    msg = str(exc).lower()
    if "timeout" in msg or "timed out" in msg:
        return ErrorType.TIMEOUT
    if "net::" in msg or "navigation" in msg:
        return ErrorType.NAVIGATION_ERROR
    if "browser" in msg or any(marker in msg for marker in _BROWSER_GONE_MARKERS):
        return ErrorType.BROWSER_ERROR
    return ErrorType.UNKNOWN


class PageFetcher:
    """Fetches one URL per call in an isolated BrowserContext.

    Each call opens a fresh context on the shared browser with a rotated
    fingerprint, navigates, extracts the raw HTML and closes the context on
    every exit path. Failures come back as FetchError, never as exceptions,
    with one exception-driven detour: a proxy tunnel failure disables the
    proxy for the process, closes the browser and retries the fetch once
    without it.
    """

    def __init__(
        self,
        browser_manager: BrowserManager,
        proxy_resolver: ProxyResolver,
        fingerprints: FingerprintPool | None = None,
        human_delay_ms: tuple[int, int] = HUMAN_DELAY_MS,
    ):
        self._browser = browser_manager
        self._proxy = proxy_resolver
        self._fingerprints = fingerprints or fingerprint_pool
        self._human_delay_ms = human_delay_ms

    async def fetch_page(
        self, url: str, options: FetchOptions | None = None
    ) -> FetchResult | FetchError:
        options = options or FetchOptions()
        attempted_proxy_fallback = False

        logger.info(
            "Fetching page %s (timeout=%sms, selector=%s)",
            url,
            options.timeout_ms,
            options.wait_for_selector,
        )

        while True:
            start = time.monotonic()
            try:
                result = await self._fetch_once(url, options, start)
            except Exception as e:
                if (
                    not attempted_proxy_fallback
                    and is_proxy_tunnel_error(e)
                    and self._proxy.get_proxy_config() is not None
                ):
                    attempted_proxy_fallback = True
                    logger.warning(
                        "Proxy tunnel failed for %s, disabling proxy for session and retrying",
                        url,
                    )
                    proxy_fallbacks_total.inc()
                    self._proxy.disable_proxy_for_session()
                    # Next launch must not carry the stale proxy args
                    await self._browser.close()
                    continue
                return self._to_fetch_error(e, url, options, start)

            fetch_requests_total.labels(error_type="none").inc()
            fetch_duration_seconds.observe(result.load_time_ms / 1000)
            logger.info(
                "Successfully fetched %s (status=%d, load_time=%dms, html_length=%d, final_url=%s)",
                url,
                result.status_code,
                result.load_time_ms,
                len(result.html),
                result.url,
                extra={
                    "url": url,
                    "final_url": result.url,
                    "status_code": result.status_code,
                    "load_time_ms": result.load_time_ms,
                    "html_length": len(result.html),
                },
            )
            return result

    async def _fetch_once(
        self, url: str, options: FetchOptions, start: float
    ) -> FetchResult:
        browser = await self._browser.get_browser()
        profile = self._fingerprints.get_next_profile()
        proxy = self._proxy.get_proxy_config()
        logger.debug("Applying browser profile %s to %s", profile.id, url)

        context = await self._open_context(browser, profile, proxy)
        active_page_contexts.inc()
        try:
            await context.add_init_script(
                build_stealth_script(NavigatorOverrides.from_profile(profile))
            )
            page = await context.new_page()
            page.set_default_timeout(options.timeout_ms)

            wait_until = "networkidle" if options.wait_for_navigation else "domcontentloaded"
            response = await page.goto(url, timeout=options.timeout_ms, wait_until=wait_until)
            if response is None:
                raise NavigationError("Navigation failed: no response received", url=url)

            delay_ms = random.randint(*self._human_delay_ms)
            await asyncio.sleep(delay_ms / 1000)
            logger.debug("Added human-like delay of %dms for %s", delay_ms, url)

            selector_found = None
            if options.wait_for_selector:
                selector_found = await self._wait_for_selector(page, url, options)

            html = await page.content()
            status_code = response.status
            headers = {str(k): str(v) for k, v in response.headers.items()}
            final_url = page.url
        finally:
            active_page_contexts.dec()
            await asyncio.shield(self._close_context(context, url))

        return FetchResult(
            status_code=status_code,
            html=html,
            headers=headers,
            url=final_url,
            load_time_ms=int((time.monotonic() - start) * 1000),
            selector_found=selector_found,
        )

    async def _open_context(
        self,
        browser: Browser,
        profile: FingerprintProfile,
        proxy: ProxyConfig | None,
    ) -> BrowserContext:
        context_kwargs = dict(
            user_agent=profile.user_agent,
            viewport={"width": profile.viewport.width, "height": profile.viewport.height},
            device_scale_factor=profile.viewport.device_scale_factor,
            locale=profile.locale,
            timezone_id=profile.timezone,
            extra_http_headers=build_extra_headers(profile),
        )
        if proxy:
            context_kwargs["proxy"] = proxy.as_playwright()

        try:
            return await browser.new_context(**context_kwargs)
        except PlaywrightError as e:
            if "timezone" not in str(e).lower():
                raise
            # Timezone emulation is best-effort
            logger.debug("Timezone %s rejected, continuing without it: %s", profile.timezone, e)
            context_kwargs.pop("timezone_id")
            return await browser.new_context(**context_kwargs)

    async def _wait_for_selector(self, page: Page, url: str, options: FetchOptions) -> bool:
        """Wait for the selector; a miss is logged, never fatal."""
        try:
            await page.wait_for_selector(options.wait_for_selector, timeout=options.timeout_ms)
        except PlaywrightError:
            logger.warning(
                "Selector %s not found within timeout for %s, returning HTML anyway",
                options.wait_for_selector,
                url,
            )
            return False
        logger.debug("Selector %s found for %s", options.wait_for_selector, url)
        return True

    async def _close_context(self, context: BrowserContext, url: str) -> None:
        try:
            await context.close()
        except Exception as e:
            logger.error("Error closing page context for %s: %s", url, e)

    def _to_fetch_error(
        self, exc: Exception, url: str, options: FetchOptions, start: float
    ) -> FetchError:
        error_type = classify_error(exc)
        raw = str(exc) or "Unknown error occurred"
        if error_type is ErrorType.TIMEOUT:
            error = f"Page load timeout after {int(options.timeout_ms)}ms"
        else:
            # Playwright appends a multi-line call log
            error = (raw.strip().splitlines() or [raw])[0]

        fetch_requests_total.labels(error_type=error_type.value).inc()
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            "Failed to fetch %s (error_type=%s, duration=%dms): %s",
            url,
            error_type.value,
            duration_ms,
            error,
            extra={
                "url": url,
                "error_type": error_type.value,
                "duration_ms": duration_ms,
            },
        )
        return FetchError(
            error_type=error_type,
            error=error,
            url=url,
            message=raw,
            stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
