"""Tests for POST /fetch, the root descriptor and unknown routes."""

import logging
from unittest.mock import AsyncMock

import httpx
import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from crawler.core.exceptions import ErrorType
from crawler.main import create_app
from crawler.services.page_fetcher import FetchError, FetchResult


@pytest.fixture
def mock_fetcher():
    return AsyncMock()


@pytest.fixture
def mock_client_app(test_settings, browser_manager, mock_fetcher):
    return create_app(test_settings, browser_manager=browser_manager, page_fetcher=mock_fetcher)


async def _post(app, payload=None, **kwargs):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        return await ac.post("/fetch", json=payload, **kwargs)


class TestFetchSuccess:
    @pytest.mark.asyncio
    async def test_success_envelope(self, client, page_script):
        """POST /fetch returns 200 with exactly the six envelope keys."""
        page_script.final_url = "https://example.com/"
        resp = await client.post("/fetch", json={"url": "https://example.com"})

        assert resp.status_code == 200
        data = resp.json()
        assert set(data) == {"success", "statusCode", "html", "headers", "url", "loadTime"}
        assert data["success"] is True
        assert data["statusCode"] == 200
        assert data["html"] == page_script.html
        assert data["headers"]["content-type"] == "text/html; charset=utf-8"
        assert data["url"] == "https://example.com/"
        assert isinstance(data["loadTime"], int)
        assert "X-Selector-Found" not in resp.headers

    @pytest.mark.asyncio
    async def test_html_returned_unmodified(self, client, page_script):
        """The HTML in the envelope is byte-identical to the page content."""
        page_script.html = "<html>\n<script>var a = '<b>';</script>é中</html>"
        resp = await client.post("/fetch", json={"url": "https://example.com"})
        assert resp.json()["html"] == page_script.html

    @pytest.mark.asyncio
    async def test_options_passed_through(self, mock_client_app, mock_fetcher):
        """Request options reach the fetcher and the URL is trimmed."""
        mock_fetcher.fetch_page.return_value = FetchResult(
            status_code=200, html="<p/>", headers={}, url="https://example.com/", load_time_ms=5
        )
        resp = await _post(
            mock_client_app,
            {
                "url": "  https://example.com  ",
                "options": {
                    "timeout": 15000,
                    "waitForSelector": "#content",
                    "waitForNavigation": False,
                },
            },
        )

        assert resp.status_code == 200
        url, options = mock_fetcher.fetch_page.await_args.args
        assert url == "https://example.com"
        assert options.timeout_ms == 15000
        assert options.wait_for_selector == "#content"
        assert options.wait_for_navigation is False

    @pytest.mark.asyncio
    async def test_default_timeout_from_settings(self, mock_client_app, mock_fetcher, test_settings):
        """Omitted options fall back to DEFAULT_TIMEOUT and network-idle waiting."""
        mock_fetcher.fetch_page.return_value = FetchResult(
            status_code=200, html="", headers={}, url="https://example.com/", load_time_ms=1
        )
        await _post(mock_client_app, {"url": "https://example.com"})
        _, options = mock_fetcher.fetch_page.await_args.args
        assert options.timeout_ms == test_settings.DEFAULT_TIMEOUT
        assert options.wait_for_selector is None
        assert options.wait_for_navigation is True

    @pytest.mark.asyncio
    async def test_selector_outcome_header(self, client, page_script):
        """X-Selector-Found reports whether the selector appeared."""
        resp = await client.post(
            "/fetch", json={"url": "https://example.com", "options": {"waitForSelector": "#a"}}
        )
        assert resp.headers["X-Selector-Found"] == "true"

        page_script.selector_present = False
        resp = await client.post(
            "/fetch", json={"url": "https://example.com", "options": {"waitForSelector": "#a"}}
        )
        assert resp.status_code == 200
        assert resp.headers["X-Selector-Found"] == "false"


class TestFetchValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, error",
        [
            ({}, "URL is required"),
            ({"url": ""}, "URL is required"),
            ({"url": "   "}, "URL cannot be empty"),
            ({"url": 42}, "URL must be a string"),
            ({"url": "not-a-url"}, "Invalid URL format"),
            ({"url": "ftp://example.com"}, "URL must use HTTP or HTTPS protocol"),
            ({"url": "https://exa mple.com"}, "Invalid URL format"),
            (
                {"url": "https://example.com", "options": {"timeout": 100}},
                "Timeout must be between 1000 and 60000 milliseconds",
            ),
            (
                {"url": "https://example.com", "options": {"timeout": "fast"}},
                "Timeout must be a number",
            ),
            (
                {"url": "https://example.com", "options": {"waitForSelector": "div[data-x"}},
                "Invalid CSS selector syntax: unmatched brackets",
            ),
        ],
    )
    async def test_rejected_before_fetch(self, mock_client_app, mock_fetcher, payload, error):
        """Invalid requests get 400 INVALID_URL and never reach the fetcher."""
        resp = await _post(mock_client_app, payload)

        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert data["errorType"] == "INVALID_URL"
        assert data["error"] == error
        mock_fetcher.fetch_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_url_echoes_url(self, mock_client_app):
        """A rejected request echoes the submitted URL."""
        resp = await _post(mock_client_app, {"url": "ftp://example.com/file"})
        assert resp.json()["url"] == "ftp://example.com/file"

    @pytest.mark.asyncio
    async def test_missing_body(self, mock_client_app, mock_fetcher):
        """An empty body is treated as a missing URL."""
        resp = await _post(mock_client_app)
        assert resp.status_code == 400
        assert resp.json()["error"] == "URL is required"
        mock_fetcher.fetch_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_json_body(self, mock_client_app, mock_fetcher):
        """Unparseable JSON gets 400 VALIDATION_ERROR."""
        transport = httpx.ASGITransport(app=mock_client_app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post(
                "/fetch",
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )

        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert data["errorType"] == "VALIDATION_ERROR"
        mock_fetcher.fetch_page.assert_not_awaited()


class TestFetchFailures:
    @pytest.mark.asyncio
    async def test_timeout_is_500(self, client, page_script):
        """A navigation timeout maps to 500 TIMEOUT."""
        page_script.goto_error = PlaywrightTimeoutError("Timeout 5000ms exceeded.")

        resp = await client.post(
            "/fetch", json={"url": "https://example.com", "options": {"timeout": 5000}}
        )

        assert resp.status_code == 500
        data = resp.json()
        assert data["success"] is False
        assert data["errorType"] == "TIMEOUT"
        assert data["error"] == "Page load timeout after 5000ms"
        assert data["url"] == "https://example.com"

    @pytest.mark.asyncio
    async def test_browser_error_is_503(self, client, launcher):
        """A browser launch failure maps to 503 BROWSER_ERROR."""
        launcher.fail_with = RuntimeError("Executable doesn't exist")
        resp = await client.post("/fetch", json={"url": "https://example.com"})
        assert resp.status_code == 503
        assert resp.json()["errorType"] == "BROWSER_ERROR"

    @pytest.mark.asyncio
    async def test_navigation_error_is_500(self, client, page_script):
        """A missing navigation response maps to 500 NAVIGATION_ERROR."""
        page_script.no_response = True
        resp = await client.post("/fetch", json={"url": "https://example.com"})
        assert resp.status_code == 500
        assert resp.json()["errorType"] == "NAVIGATION_ERROR"

    @pytest.mark.asyncio
    async def test_debug_fields_outside_production(self, client, page_script):
        """Error envelopes carry message and stack outside production."""
        page_script.goto_error = ValueError("something odd")
        resp = await client.post("/fetch", json={"url": "https://example.com"})
        data = resp.json()
        assert data["errorType"] == "UNKNOWN"
        assert data["message"] == "something odd"
        assert "ValueError" in data["stack"]

    @pytest.mark.asyncio
    async def test_no_debug_fields_in_production(self, test_settings, browser_manager, mock_fetcher):
        """Production error envelopes omit message and stack."""
        cfg = test_settings.model_copy(update={"ENVIRONMENT": "production"})
        app = create_app(cfg, browser_manager=browser_manager, page_fetcher=mock_fetcher)
        mock_fetcher.fetch_page.return_value = FetchError(
            error_type=ErrorType.TIMEOUT,
            error="Page load timeout after 30000ms",
            url="https://example.com",
            message="Timeout 30000ms exceeded.",
            stack="Traceback ...",
        )

        resp = await _post(app, {"url": "https://example.com"})

        assert resp.status_code == 500
        assert set(resp.json()) == {"success", "error", "errorType", "url"}


class TestRoutes:
    @pytest.mark.asyncio
    async def test_root_descriptor(self, client, test_settings):
        """GET / describes the service and its endpoints."""
        resp = await client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["service"] == test_settings.APP_NAME
        assert data["version"] == test_settings.APP_VERSION
        assert data["status"] == "running"
        assert data["endpoints"]["health"] == "GET /health"
        assert data["endpoints"]["fetch"] == "POST /fetch"

    @pytest.mark.asyncio
    async def test_unknown_path(self, client):
        """Unknown paths return 404 NOT_FOUND with the path."""
        resp = await client.get("/does/not/exist")
        assert resp.status_code == 404
        assert resp.json() == {
            "success": False,
            "error": "Not found",
            "errorType": "NOT_FOUND",
            "path": "/does/not/exist",
        }

    @pytest.mark.asyncio
    async def test_wrong_method_is_not_found(self, client):
        """GET /fetch is treated as an unknown route."""
        resp = await client.get("/fetch")
        assert resp.status_code == 404
        assert resp.json()["errorType"] == "NOT_FOUND"
        assert resp.json()["path"] == "/fetch"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        """A caller-supplied X-Request-ID is echoed back."""
        resp = await client.get("/", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, client):
        """A request id is generated when none is supplied."""
        resp = await client.get("/")
        assert len(resp.headers["X-Request-ID"]) == 12

    @pytest.mark.asyncio
    async def test_access_line_logged(self, client, caplog):
        """Each request logs one access line with method, path and status."""
        caplog.set_level(logging.INFO, logger="crawler.access")
        await client.get("/", headers={"X-Request-ID": "req-7"})

        record = next(r for r in caplog.records if r.name == "crawler.access")
        assert record.method == "GET"
        assert record.path == "/"
        assert record.status_code == 200
        assert record.duration_ms >= 0
