from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    # human-readable logs and debug health details
    DEBUG: bool = False

    # CORS allow origins (comma-separated). Default empty (no cross-origin).
    CORS_ALLOW_ORIGINS: str = ""

    # Routing provider
    ROUTING_PROVIDER: Literal["openrouteservice", "osrm"] = "openrouteservice"
    ORS_API_KEY: str | None = None
    ORS_BASE_URL: str = "https://api.openrouteservice.org"
    OSRM_BASE_URL: str = "https://router.project-osrm.org"
    ROUTING_PROFILE: str = "driving"
    ROUTING_TIMEOUT_SECONDS: float = 10.0
    ROUTING_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # Retry policy per routing query (1 attempt = no retry)
    ROUTING_MAX_ATTEMPTS: int = 1
    ROUTING_BACKOFF_SECONDS: float = 0.5
    ROUTING_BACKOFF_MULTIPLIER: float = 2.0

    # Circuit breaker guarding the routing provider
    ROUTING_BREAKER_ENABLED: bool = True
    ROUTING_BREAKER_FAILURE_THRESHOLD: int = 5
    ROUTING_BREAKER_COOLDOWN_SECONDS: float = 30.0

    # 0 means every driver is estimated at once
    ESTIMATE_MAX_CONCURRENCY: int = 0

    # Pricing
    PRICE_PER_MINUTE: float = 0.5

    # Map fallback when the rider location is unknown
    DEFAULT_REGION_LATITUDE: float = 37.78825
    DEFAULT_REGION_LONGITUDE: float = -122.4324

    # Address search (Nominatim)
    GEOCODER_BASE_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = "ride-estimates/0.1"
    GEOCODER_TIMEOUT_SECONDS: float = 6.0

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def routing_configured(self) -> bool:
        if self.ROUTING_PROVIDER == "openrouteservice":
            return bool((self.ORS_API_KEY or "").strip())
        return bool(self.OSRM_BASE_URL.strip())


settings = Settings()
