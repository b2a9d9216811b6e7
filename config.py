"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Every external dependency is optional: without MONGODB_URI the service runs
on the in-process store only, and without REDIS_URI the global rollup is
computed on every dashboard read instead of being cached.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without it the in-process store is the only store
    mongodb_uri: Optional[str] = None
    db_name: str = "link360"

    # Upper bound for every durable-store call; a timeout counts as a failure
    store_timeout_seconds: float = 2.0
    mongo_server_selection_timeout_ms: int = 2000


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; only used to cache the global rollup between dashboard reads
    redis_uri: Optional[str] = None
    rollup_cache_ttl_seconds: int = 30
    rollup_cache_stale_ttl_seconds: int = 120


class IdentitySettings(BaseSettings):
    """Verification parameters for bearer ID tokens from the identity provider."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    identity_issuer: str = ""
    identity_audience: str = ""

    # RS256 public key (preferred)
    identity_public_key: str = ""

    # HS256 fallback (used when no public key is configured)
    identity_secret: str = ""

    identity_leeway_seconds: int = 30

    @property
    def use_rs256(self) -> bool:
        return bool(self.identity_public_key)


class AnalyticsSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Newest click events kept per link; counters stay exact totals
    click_history_limit: int = Field(default=5000, ge=1)

    rollup_window_days: int = Field(default=30, ge=1)
    rollup_max_window_days: int = Field(default=365, ge=1)

    # Synthetic conversion estimate applied to each click in the rollup window
    conversion_rate: float = Field(default=0.1043, ge=0.0, le=1.0)

    # Outbound messages buffered per live dashboard connection
    subscriber_queue_size: int = Field(default=256, ge=1)

    short_code_length: int = Field(default=7, ge=4, le=32)
    blocked_domains: list[str] = []


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production

    # Sampling rates (0.0–1.0)
    sample_rate_redirect: float = 0.05
    sample_rate_impression: float = 0.05
    sample_rate_publish: float = 0.01


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    # Public base URL for short links; derived from the request when unset
    app_url: Optional[str] = None
    app_name: str = "Link360"

    # CORS: all origins
    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    identity: Optional[IdentitySettings] = None
    analytics: Optional[AnalyticsSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.identity is None:
            self.identity = IdentitySettings()
        if self.analytics is None:
            self.analytics = AnalyticsSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
