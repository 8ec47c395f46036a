import logging
import time
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from crawler.api.fetch import router as fetch_router
from crawler.api.health import router as health_router
from crawler.config import Settings, settings
from crawler.core.error_handlers import register_exception_handlers
from crawler.core.logging_config import configure_logging
from crawler.middleware.request_id import RequestIDMiddleware
from crawler.services.browser import BrowserManager
from crawler.services.page_fetcher import PageFetcher
from crawler.services.proxy import ProxyResolver

# Configure structured logging (must happen before any logger is created)
configure_logging(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.ENVIRONMENT,
        release=f"{settings.APP_NAME}@{settings.APP_VERSION}",
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Launch the shared browser on startup, close it on shutdown.

    Uvicorn runs the shutdown half only after it has stopped accepting
    connections and drained in-flight requests on SIGINT/SIGTERM.
    """
    cfg: Settings = app.state.settings
    logger.info(
        "Starting %s v%s (environment=%s, port=%d)",
        cfg.APP_NAME,
        cfg.APP_VERSION,
        cfg.ENVIRONMENT,
        cfg.CRAWLER_PORT,
    )
    if cfg.LAUNCH_ON_STARTUP:
        await app.state.browser_manager.launch()
        logger.info("Browser initialized successfully")

    yield

    logger.info("Shutting down...")
    await app.state.browser_manager.shutdown()
    logger.info("Shutdown complete")


def create_app(
    cfg: Settings | None = None,
    browser_manager: BrowserManager | None = None,
    page_fetcher: PageFetcher | None = None,
) -> FastAPI:
    """Build the app and wire one BrowserManager/PageFetcher into it."""
    cfg = cfg or settings
    # Fetcher and manager share one ProxyResolver
    browser_manager = browser_manager or BrowserManager(ProxyResolver(cfg), cfg)
    page_fetcher = page_fetcher or PageFetcher(browser_manager, browser_manager.proxy_resolver)

    app = FastAPI(
        title=cfg.APP_NAME,
        version=cfg.APP_VERSION,
        description="Headless browser crawler: fetches pages through a shared, "
        "fingerprint-rotating Chromium instance and returns raw HTML.",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.browser_manager = browser_manager
    app.state.page_fetcher = page_fetcher
    app.state.started_at = time.monotonic()

    app.add_middleware(GZipMiddleware, minimum_size=500)
    # Request ID middleware is added last so it wraps everything else
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(fetch_router)

    @app.get("/")
    async def root():
        return {
            "service": cfg.APP_NAME,
            "version": cfg.APP_VERSION,
            "status": "running",
            "endpoints": {
                "health": "GET /health",
                "fetch": "POST /fetch",
                "metrics": "GET /metrics",
            },
        }

    return app


app = create_app()
