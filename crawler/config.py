from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "crawler-service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )

    # HTTP server
    CRAWLER_HOST: str = "0.0.0.0"
    CRAWLER_PORT: int = 3001
    SHUTDOWN_GRACE_PERIOD: int = 30  # seconds to drain in-flight fetches

    # Browser
    BROWSER_HEADLESS: bool = True
    LAUNCH_ON_STARTUP: bool = True
    DEFAULT_TIMEOUT: int = 30000  # ms
    HEALTH_CHECK_TIMEOUT: float = 1.0  # seconds

    # Proxy (Apify residential/datacenter proxy)
    APIFY_PROXY_USERNAME: str = ""
    APIFY_PROXY_GROUPS: str = ""
    APIFY_PROXY_COUNTRY: str = ""
    APIFY_PROXY_SESSION: str = ""
    APIFY_PROXY_PASSWORD: str = ""
    APIFY_PROXY_HOSTNAME: str = "proxy.apify.com"
    APIFY_PROXY_PORT: str = "8000"

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"


settings = Settings()
