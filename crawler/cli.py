"""Command-line entry points for the crawler service.

Usage:
    python -m crawler.cli serve
    python -m crawler.cli serve --host 127.0.0.1 --port 3001
    python -m crawler.cli fetch https://example.com
    python -m crawler.cli fetch https://example.com --selector "#content" --timeout 15000
"""

import argparse
import asyncio
import json
import logging
import sys

from crawler.config import settings


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _cmd_serve(args) -> int:
    """Run the HTTP service under uvicorn.

    Uvicorn owns SIGINT/SIGTERM: it stops accepting connections, drains
    in-flight requests, then the app lifespan closes the browser.
    """
    import uvicorn

    uvicorn.run(
        "crawler.main:app",
        host=args.host or settings.CRAWLER_HOST,
        port=args.port or settings.CRAWLER_PORT,
        log_config=None,
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_PERIOD,
    )
    return 0


async def _cmd_fetch(args) -> int:
    """Fetch one URL and print the response envelope."""
    from crawler.schemas.fetch import ErrorResponse, FetchSuccessResponse
    from crawler.services.browser import BrowserManager
    from crawler.services.page_fetcher import FetchOptions, FetchResult, PageFetcher
    from crawler.services.proxy import ProxyResolver
    from crawler.services.validator import validate_request

    validation = validate_request(
        args.url, {"timeout": args.timeout, "waitForSelector": args.selector}
    )
    if not validation.valid:
        print(f"[ERROR] {validation.error}", file=sys.stderr)
        return 2

    proxy_resolver = ProxyResolver(settings)
    manager = BrowserManager(proxy_resolver, settings)
    fetcher = PageFetcher(manager, proxy_resolver)
    try:
        result = await fetcher.fetch_page(
            args.url,
            FetchOptions(
                timeout_ms=args.timeout or settings.DEFAULT_TIMEOUT,
                wait_for_selector=args.selector,
                wait_for_navigation=not args.no_wait,
            ),
        )
    finally:
        await manager.shutdown()

    if isinstance(result, FetchResult):
        if args.html_only:
            print(result.html)
        else:
            output = FetchSuccessResponse.from_result(result).model_dump(by_alias=True)
            print(json.dumps(output, indent=2, ensure_ascii=False))
        return 0

    output = ErrorResponse.from_fetch_error(result, include_debug=args.verbose).to_json()
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="crawler-service",
        description="Headless browser crawler service",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    fetch = sub.add_parser("fetch", help="Fetch a single URL and print the result")
    fetch.add_argument("url")
    fetch.add_argument("--timeout", type=int, default=None, help="Timeout in ms (1000-60000)")
    fetch.add_argument("--selector", default=None, help="CSS selector to wait for")
    fetch.add_argument(
        "--no-wait",
        action="store_true",
        help="Stop at DOMContentLoaded instead of waiting for network idle",
    )
    fetch.add_argument("--html-only", action="store_true", help="Print only the raw HTML")

    args = parser.parse_args(argv)

    if args.command == "serve":
        return _cmd_serve(args)

    _setup_logging(args.verbose)
    return asyncio.run(_cmd_fetch(args))


if __name__ == "__main__":
    sys.exit(main())
