import json
from dataclasses import dataclass, field

from crawler.services.fingerprints import FingerprintProfile

# ---------------------------------------------------------------------------
# Navigator overrides, one entry per property patched before page scripts run
# ---------------------------------------------------------------------------

DEFAULT_PLUGINS = (
    "Chrome PDF Plugin",
    "Chrome PDF Viewer",
    "Native Client",
    "PDF Viewer",
    "Chromium PDF Viewer",
)


@dataclass(frozen=True)
class NavigatorOverrides:
    webdriver: bool
    plugins: tuple[str, ...]
    languages: tuple[str, ...]
    platform: str
    vendor: str
    hardware_concurrency: int
    device_memory: int
    chrome_runtime: bool = True
    permissions: dict[str, str] = field(
        default_factory=lambda: {"notifications": "default"}
    )

    @classmethod
    def from_profile(cls, profile: FingerprintProfile) -> "NavigatorOverrides":
        return cls(
            webdriver=False,
            plugins=DEFAULT_PLUGINS,
            languages=profile.languages,
            platform=profile.platform,
            vendor=profile.vendor,
            hardware_concurrency=profile.hardware_concurrency,
            device_memory=profile.device_memory,
        )

    def navigator_properties(self) -> dict:
        """Plain navigator getters (everything except plugins/runtime/permissions)."""
        return {
            "webdriver": self.webdriver,
            "languages": list(self.languages),
            "platform": self.platform,
            "vendor": self.vendor,
            "hardwareConcurrency": self.hardware_concurrency,
            "deviceMemory": self.device_memory,
        }


def build_stealth_script(overrides: NavigatorOverrides) -> str:
    """Render the init script applying ``overrides`` on every new document."""
    payload = json.dumps(
        {
            "navigator": overrides.navigator_properties(),
            "plugins": list(overrides.plugins),
            "chromeRuntime": overrides.chrome_runtime,
            "permissions": overrides.permissions,
        }
    )
    return f"""
(() => {{
    const cfg = {payload};
    const proto = Object.getPrototypeOf(navigator);

    for (const [name, value] of Object.entries(cfg.navigator)) {{
        Object.defineProperty(proto, name, {{ get: () => value, configurable: true }});
    }}

    const plugins = cfg.plugins.map((name) => ({{ name, filename: 'internal-pdf-viewer', description: '', length: 1 }}));
    Object.defineProperty(proto, 'plugins', {{ get: () => plugins, configurable: true }});

    if (cfg.chromeRuntime && !window.chrome) {{
        window.chrome = {{ runtime: {{}} }};
    }} else if (cfg.chromeRuntime && !window.chrome.runtime) {{
        window.chrome.runtime = {{}};
    }}

    if (navigator.permissions && navigator.permissions.query) {{
        const originalQuery = navigator.permissions.query.bind(navigator.permissions);
        navigator.permissions.query = (parameters) => (
            parameters && cfg.permissions[parameters.name] !== undefined
                ? Promise.resolve({{ state: cfg.permissions[parameters.name] }})
                : originalQuery(parameters)
        );
    }}
}})();
"""


def build_extra_headers(profile: FingerprintProfile) -> dict[str, str]:
    """Headers a real Chrome sends on a top-level navigation."""
    return {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": profile.accept_language,
        "Accept-Encoding": "gzip, deflate, br",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-User": "?1",
        "Sec-Fetch-Dest": "document",
        "Upgrade-Insecure-Requests": "1",
    }
