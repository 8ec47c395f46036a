from fastapi import Request

from crawler.config import Settings
from crawler.services.browser import BrowserManager
from crawler.services.page_fetcher import PageFetcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_browser_manager(request: Request) -> BrowserManager:
    return request.app.state.browser_manager


def get_page_fetcher(request: Request) -> PageFetcher:
    return request.app.state.page_fetcher
