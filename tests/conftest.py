import httpx
import pytest
import pytest_asyncio

from crawler.config import Settings
from crawler.main import create_app
from crawler.services.browser import BrowserManager
from crawler.services.fingerprints import FingerprintPool
from crawler.services.page_fetcher import PageFetcher
from crawler.services.proxy import ProxyResolver

from tests.fakes import FakeLauncher, PageScript


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        LOG_FORMAT="text",
        LAUNCH_ON_STARTUP=False,
        APIFY_PROXY_USERNAME="",
        APIFY_PROXY_GROUPS="",
        APIFY_PROXY_COUNTRY="",
        APIFY_PROXY_SESSION="",
        APIFY_PROXY_PASSWORD="",
    )


@pytest.fixture
def proxy_settings(test_settings) -> Settings:
    return test_settings.model_copy(
        update={"APIFY_PROXY_PASSWORD": "secret", "APIFY_PROXY_GROUPS": "RESIDENTIAL"}
    )


@pytest.fixture
def page_script() -> PageScript:
    return PageScript()


@pytest.fixture
def launcher(page_script) -> FakeLauncher:
    return FakeLauncher(page_script)


@pytest.fixture
def proxy_resolver(test_settings) -> ProxyResolver:
    return ProxyResolver(test_settings)


@pytest.fixture
def browser_manager(proxy_resolver, test_settings, launcher) -> BrowserManager:
    return BrowserManager(proxy_resolver, test_settings, launcher=launcher)


@pytest.fixture
def page_fetcher(browser_manager, proxy_resolver) -> PageFetcher:
    return PageFetcher(
        browser_manager,
        proxy_resolver,
        fingerprints=FingerprintPool(start=0),
        human_delay_ms=(0, 0),
    )


@pytest.fixture
def app(test_settings, browser_manager, page_fetcher):
    return create_app(test_settings, browser_manager=browser_manager, page_fetcher=page_fetcher)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
