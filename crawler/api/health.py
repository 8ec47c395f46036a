import asyncio
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from crawler.api.deps import get_browser_manager, get_settings
from crawler.config import Settings
from crawler.core.metrics import get_metrics, get_metrics_content_type
from crawler.schemas.fetch import BrowserStatus, HealthResponse
from crawler.services.browser import BrowserManager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    summary="Health check",
    description="Report whether the shared browser is connected, its version, and service uptime. Answers within about one second: the version lookup is raced against a timeout. Returns HTTP 200 when the browser is connected and 503 otherwise.",
)
async def health(
    request: Request,
    manager: BrowserManager = Depends(get_browser_manager),
    cfg: Settings = Depends(get_settings),
):
    connected = manager.is_connected()
    version = None
    if connected:
        try:
            version = await asyncio.wait_for(
                manager.get_version(), timeout=cfg.HEALTH_CHECK_TIMEOUT
            )
        except asyncio.TimeoutError:
            logger.warning("Browser version lookup timed out")

    body = HealthResponse(
        status="healthy" if connected else "unhealthy",
        browser=BrowserStatus(connected=connected, version=version),
        uptime=int(time.monotonic() - request.app.state.started_at),
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )
    return JSONResponse(status_code=200 if connected else 503, content=body.model_dump())


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose fetch, browser and proxy metrics in Prometheus exposition format. Returns HTTP 404 if metrics collection is disabled.",
)
async def metrics(cfg: Settings = Depends(get_settings)):
    """Prometheus metrics endpoint."""
    if not cfg.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
