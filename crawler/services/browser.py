import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from playwright.async_api import async_playwright, Browser

from crawler.config import Settings, settings as default_settings
from crawler.core.exceptions import LaunchError
from crawler.core.metrics import browser_launches_total
from crawler.services.proxy import ProxyResolver

logger = logging.getLogger(__name__)

Launcher = Callable[..., Awaitable[Browser]]


class EngineState(str, Enum):
    UNLAUNCHED = "unlaunched"
    LAUNCHING = "launching"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class BrowserManager:
    """Owns the single Chromium instance shared by every fetch.

    Launching Chromium is expensive, so one browser lives for the whole
    process and each fetch gets its own BrowserContext on it. Concurrent
    callers that find no browser all await the same launch task; a crashed
    browser is dropped and relaunched by the next caller.
    """

    _CHROMIUM_ARGS = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-accelerated-2d-canvas",
        "--disable-gpu",
        "--window-size=1920,1080",
        "--disable-blink-features=AutomationControlled",
        "--disable-features=IsolateOrigins,site-per-process",
        "--disable-web-security",
        "--disable-features=VizDisplayCompositor",
    ]

    def __init__(
        self,
        proxy_resolver: ProxyResolver,
        cfg: Settings | None = None,
        launcher: Launcher | None = None,
    ):
        self._proxy = proxy_resolver
        self._settings = cfg or default_settings
        self._launcher = launcher or self._launch_chromium
        self._playwright = None
        self._browser: Browser | None = None
        self._state = EngineState.UNLAUNCHED
        self._launch_task: asyncio.Task | None = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def proxy_resolver(self) -> ProxyResolver:
        return self._proxy

    def _set_state(self, state: EngineState, browser: Browser | None = None):
        """Single mutation point for the engine handle."""
        self._state = state
        self._browser = browser if state is EngineState.CONNECTED else None

    # ------------------------------------------------------------------
    # Launch
    # ------------------------------------------------------------------

    def _build_launch_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "headless": self._settings.BROWSER_HEADLESS,
            "args": list(self._CHROMIUM_ARGS),
        }
        proxy = self._proxy.get_proxy_config()
        if proxy:
            # Credentials are supplied per context
            options["proxy"] = {"server": proxy.server}
            logger.info(
                "Proxy configuration enabled (server=%s, username=%s)",
                proxy.server,
                proxy.username,
            )
        elif self._proxy.is_proxy_disabled_for_session():
            logger.warning("Proxy configuration disabled for session")
        return options

    async def _launch_chromium(self, **options) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(**options)

    async def _do_launch(self) -> Browser:
        options = self._build_launch_options()
        logger.info("Launching browser (headless=%s)", options["headless"])
        try:
            try:
                browser = await self._launcher(**options)
            except Exception as e:
                browser_launches_total.labels(status="error").inc()
                logger.error("Failed to launch browser: %s", e)
                raise LaunchError(f"Failed to launch browser: {e}") from e

            browser.on("disconnected", self._on_disconnected)
            self._set_state(EngineState.CONNECTED, browser)
            browser_launches_total.labels(status="success").inc()
            logger.info("Browser launched successfully (version=%s)", browser.version)
            return browser
        finally:
            if self._state is EngineState.LAUNCHING:
                self._set_state(EngineState.UNLAUNCHED)
            self._launch_task = None

    async def launch(self) -> Browser:
        """Return the running browser, launching it if needed.

        Never starts two launches at once: callers arriving while a launch
        is underway await the same task and receive the same browser.
        """
        if self._launch_task is not None:
            logger.debug("Browser launch already in progress, waiting")
            return await asyncio.shield(self._launch_task)

        if self.is_connected():
            logger.debug("Browser already running, reusing instance")
            return self._browser

        self._set_state(EngineState.LAUNCHING)
        self._launch_task = asyncio.create_task(self._do_launch())
        return await asyncio.shield(self._launch_task)

    async def get_browser(self) -> Browser:
        if self.is_connected():
            return self._browser
        if self._state is EngineState.DISCONNECTED:
            logger.warning("Browser not connected, relaunching")
        return await self.launch()

    def _on_disconnected(self, browser: Browser) -> None:
        # Ignore late events from a browser that was already replaced or closed
        if browser is not self._browser:
            return
        logger.warning("Browser disconnected unexpectedly, will relaunch on next request")
        self._set_state(EngineState.DISCONNECTED)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        return (
            self._state is EngineState.CONNECTED
            and self._browser is not None
            and self._browser.is_connected()
        )

    async def get_version(self) -> str | None:
        """Browser version, or None when no browser is connected."""
        if not self.is_connected():
            return None
        try:
            return self._browser.version
        except Exception as e:
            logger.error("Failed to get browser version: %s", e)
            return None

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the browser. Safe to call repeatedly; never raises."""
        if self._launch_task is not None:
            try:
                await asyncio.shield(self._launch_task)
            except Exception:
                # A failed launch leaves nothing to close
                pass

        browser = self._browser
        self._set_state(EngineState.UNLAUNCHED)
        if browser is None:
            return

        try:
            logger.info("Closing browser...")
            await browser.close()
            logger.info("Browser closed successfully")
        except Exception as e:
            logger.error("Error closing browser: %s", e)

    async def shutdown(self) -> None:
        """Close the browser and stop the Playwright driver."""
        await self.close()
        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.error("Error stopping Playwright: %s", e)
            self._playwright = None
        logger.info("Browser manager shut down")
