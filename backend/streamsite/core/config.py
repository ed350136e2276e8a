from typing import List, Optional, Union

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_V1_STR: str = "/api"
    PROJECT_NAME: str = "Stream Site"
    LOG_LEVEL: str = "INFO"
    # CORS_ORIGINS is a JSON-formatted list or a comma separated string
    # e.g: '["http://localhost:3000"]' or 'http://localhost,http://localhost:3000'
    CORS_ORIGINS: List[AnyHttpUrl] = ["http://localhost:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Video platform (Mux) settings
    MUX_TOKEN_ID: Optional[str] = None
    MUX_TOKEN_SECRET: Optional[str] = None
    MUX_API_BASE_URL: str = "https://api.mux.com"
    MUX_WEBHOOK_SECRET: Optional[str] = None
    MUX_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Headless CMS (Cosmic) settings
    COSMIC_BUCKET_SLUG: Optional[str] = None
    COSMIC_READ_KEY: Optional[str] = None
    COSMIC_WRITE_KEY: Optional[str] = None
    COSMIC_API_BASE_URL: str = "https://api.cosmicjs.com/v3"

    # Shown when no stream record exists yet
    DEFAULT_PLAYBACK_ID: str = "NPQ01ZJs9TAkBnsxlfsF2CvNwHXTooFdcxrgGXFEi7cs"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Status synchronization
    STATUS_CACHE_TTL_SECONDS: int = 5
    WEBHOOK_DEDUP_TTL_SECONDS: int = 60 * 60 * 24
    RECONCILE_INTERVAL_SECONDS: int = 60  # 0 disables the scheduled job
    SYNC_POLL_INTERVAL_SECONDS: float = 30.0

    @field_validator("SYNC_POLL_INTERVAL_SECONDS")
    def check_poll_interval(cls, v: float) -> float:
        if not 10.0 <= v <= 30.0:
            raise ValueError("SYNC_POLL_INTERVAL_SECONDS must be between 10 and 30 seconds")
        return v

    @field_validator("HTTP_TIMEOUT_SECONDS")
    def check_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be positive")
        return v

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"

    # Tracing
    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "streamsite-backend"
    OTLP_ENDPOINT: str = "http://localhost:4317"
    OTLP_INSECURE: bool = True

    model_config = {
        "case_sensitive": True,
        "env_file": ".env",
        "extra": "ignore",
    }

    @property
    def mux_configured(self) -> bool:
        return bool(self.MUX_TOKEN_ID and self.MUX_TOKEN_SECRET)

    @property
    def cosmic_configured(self) -> bool:
        return bool(self.COSMIC_BUCKET_SLUG and self.COSMIC_READ_KEY)


settings = Settings()
