import logging
from dataclasses import dataclass

from crawler.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyConfig:
    server: str  # http://host:port
    username: str
    password: str

    def as_playwright(self) -> dict:
        """Proxy settings dict in the shape Playwright expects."""
        return {
            "server": self.server,
            "username": self.username,
            "password": self.password,
        }


def build_username(cfg: Settings) -> str:
    """Build the Apify proxy username from env hints.

    An explicit APIFY_PROXY_USERNAME wins. Otherwise groups/country/session
    are joined as ``groups-X,country-YY,session-Z``; ``auto`` if none is set.
    """
    explicit = cfg.APIFY_PROXY_USERNAME.strip()
    if explicit:
        return explicit

    groups = cfg.APIFY_PROXY_GROUPS.strip()
    country = cfg.APIFY_PROXY_COUNTRY.strip()
    session = cfg.APIFY_PROXY_SESSION.strip()
    parts: list[str] = []

    if groups:
        if groups.startswith("groups-"):
            groups = groups[len("groups-"):]
        parts.append(f"groups-{groups}")
    if country:
        parts.append(f"country-{country.upper()}")
    if session:
        parts.append(f"session-{session}")

    return ",".join(parts) if parts else "auto"


class ProxyResolver:
    """Derives the proxy config from settings.

    Holds a process-wide circuit breaker: once a tunnel failure disables the
    proxy it stays disabled until the process restarts.
    """

    def __init__(self, cfg: Settings | None = None):
        self._settings = cfg or default_settings
        self._disabled = False

    def get_proxy_config(self) -> ProxyConfig | None:
        if self._disabled:
            return None

        password = self._settings.APIFY_PROXY_PASSWORD.strip()
        if not password:
            return None

        host = self._settings.APIFY_PROXY_HOSTNAME.strip() or "proxy.apify.com"
        port = str(self._settings.APIFY_PROXY_PORT).strip() or "8000"
        return ProxyConfig(
            server=f"http://{host}:{port}",
            username=build_username(self._settings),
            password=password,
        )

    def disable_proxy_for_session(self) -> None:
        if not self._disabled:
            logger.warning("Proxy disabled for the rest of this process")
        self._disabled = True

    def is_proxy_disabled_for_session(self) -> bool:
        return self._disabled
