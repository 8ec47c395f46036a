import random
import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int
    device_scale_factor: float = 1


@dataclass(frozen=True)
class FingerprintProfile:
    """A coherent browser identity applied to one fetch."""

    id: str
    user_agent: str
    viewport: Viewport
    accept_language: str
    languages: tuple[str, ...]
    platform: str
    vendor: str
    hardware_concurrency: int
    device_memory: int
    timezone: str

    @property
    def locale(self) -> str:
        return self.languages[0]


# ---------------------------------------------------------------------------
# Realistic desktop Chrome identities: UA, platform and screen kept coherent
# ---------------------------------------------------------------------------

PROFILES: tuple[FingerprintProfile, ...] = (
    FingerprintProfile(
        id="win10-chrome120-1080p",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        viewport=Viewport(1920, 1080, 1),
        accept_language="en-US,en;q=0.9",
        languages=("en-US", "en"),
        platform="Win32",
        vendor="Google Inc.",
        hardware_concurrency=8,
        device_memory=8,
        timezone="America/New_York",
    ),
    FingerprintProfile(
        id="win11-chrome121-768p",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
        viewport=Viewport(1366, 768, 1),
        accept_language="en-US,en;q=0.8",
        languages=("en-US", "en"),
        platform="Win32",
        vendor="Google Inc.",
        hardware_concurrency=4,
        device_memory=4,
        timezone="America/Chicago",
    ),
    FingerprintProfile(
        id="mac13-chrome122-1050p",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 13_2_1) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        viewport=Viewport(1680, 1050, 2),
        accept_language="en-US,en;q=0.9",
        languages=("en-US", "en"),
        platform="MacIntel",
        vendor="Google Inc.",
        hardware_concurrency=8,
        device_memory=8,
        timezone="America/Los_Angeles",
    ),
    FingerprintProfile(
        id="mac14-chrome123-900p",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 14_1) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
        viewport=Viewport(1440, 900, 2),
        accept_language="en-GB,en;q=0.9",
        languages=("en-GB", "en"),
        platform="MacIntel",
        vendor="Google Inc.",
        hardware_concurrency=8,
        device_memory=8,
        timezone="Europe/Berlin",
    ),
    FingerprintProfile(
        id="linux-chrome120-900p",
        user_agent="Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        viewport=Viewport(1600, 900, 1),
        accept_language="en-US,en;q=0.9",
        languages=("en-US", "en"),
        platform="Linux x86_64",
        vendor="Google Inc.",
        hardware_concurrency=4,
        device_memory=4,
        timezone="UTC",
    ),
    FingerprintProfile(
        id="win10-chrome119-900p",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
        viewport=Viewport(1600, 900, 1),
        accept_language="en-US,en;q=0.9",
        languages=("en-US", "en"),
        platform="Win32",
        vendor="Google Inc.",
        hardware_concurrency=6,
        device_memory=8,
        timezone="America/Denver",
    ),
)


class FingerprintPool:
    """Round-robin rotation over a fixed list of profiles.

    The starting offset is random so that several service processes started
    together do not hand out identical identities in lockstep.
    """

    def __init__(
        self,
        profiles: tuple[FingerprintProfile, ...] = PROFILES,
        start: int | None = None,
    ):
        if not profiles:
            raise ValueError("FingerprintPool requires at least one profile")
        self._profiles = tuple(profiles)
        if start is None:
            start = random.randrange(len(self._profiles))
        self._index = start % len(self._profiles)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._profiles)

    @property
    def profiles(self) -> tuple[FingerprintProfile, ...]:
        return self._profiles

    def get_next_profile(self) -> FingerprintProfile:
        with self._lock:
            profile = self._profiles[self._index]
            self._index = (self._index + 1) % len(self._profiles)
        return profile


# Module-level pool, offset chosen once per process
fingerprint_pool = FingerprintPool()


def get_next_profile() -> FingerprintProfile:
    return fingerprint_pool.get_next_profile()
