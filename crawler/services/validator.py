"""Pre-flight validation of fetch requests.

Everything here is pure: no browser or network work happens until a request
has passed ``validate_request``.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlsplit

MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 60000

_LEADING_DIGIT = re.compile(r"^[0-9]")
# Characters a host name can never contain (bracketed IPv6 is checked apart)
_FORBIDDEN_HOST_CHARS = re.compile(r"[\x00-\x20\x7f#%/:<>?@\[\\\]^|]")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


_OK = ValidationResult(valid=True)


def _fail(error: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error)


def validate_url(url: Any) -> ValidationResult:
    """Accept only absolute http/https URLs."""
    if url is None or url == "":
        return _fail("URL is required")
    if not isinstance(url, str):
        return _fail("URL must be a string")
    if not url.strip():
        return _fail("URL cannot be empty")

    try:
        parsed = urlsplit(url.strip())
        # Accessing .port raises ValueError on a malformed port
        parsed.port
    except ValueError:
        return _fail("Invalid URL format")

    if not parsed.scheme or not (parsed.netloc or parsed.path):
        return _fail("Invalid URL format")
    if parsed.scheme.lower() not in ("http", "https"):
        return _fail("URL must use HTTP or HTTPS protocol")
    if not parsed.hostname:
        return _fail("Invalid URL format")
    if "[" not in parsed.netloc and _FORBIDDEN_HOST_CHARS.search(parsed.hostname):
        return _fail("Invalid URL format")

    return _OK


def validate_timeout(timeout: Any) -> ValidationResult:
    """Timeout is optional; when given it must lie in [1000, 60000] ms."""
    if timeout is None:
        return _OK
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        return _fail("Timeout must be a number")
    if not math.isfinite(timeout):
        return _fail("Timeout must be a valid number")
    if timeout < MIN_TIMEOUT_MS or timeout > MAX_TIMEOUT_MS:
        return _fail(
            f"Timeout must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS} milliseconds"
        )
    return _OK


def validate_selector(selector: Any) -> ValidationResult:
    """Heuristic sanity check of a CSS selector, not a full CSS grammar."""
    if selector is None:
        return _OK
    if not isinstance(selector, str):
        return _fail("Selector must be a string")
    if not selector.strip():
        return _fail("Selector cannot be empty")
    if "  " in selector:
        return _fail("Invalid CSS selector syntax: multiple consecutive spaces")
    if selector.count("[") != selector.count("]"):
        return _fail("Invalid CSS selector syntax: unmatched brackets")
    if selector.count("(") != selector.count(")"):
        return _fail("Invalid CSS selector syntax: unmatched parentheses")
    if _LEADING_DIGIT.match(selector.strip()):
        return _fail("Invalid CSS selector syntax: cannot start with a number")
    return _OK


def validate_request(url: Any, options: Mapping[str, Any] | None = None) -> ValidationResult:
    """Validate URL, then timeout, then selector; first failure wins."""
    result = validate_url(url)
    if not result.valid:
        return result

    options = options or {}

    result = validate_timeout(options.get("timeout"))
    if not result.valid:
        return result

    return validate_selector(options.get("waitForSelector"))
