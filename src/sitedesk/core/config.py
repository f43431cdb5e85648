from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Sitedesk Admin Console"
    app_env: str = "development"  # development, testing, production
    debug: bool = False
    enable_openapi: bool = True  # Set to False in production

    # Database
    database_url: str
    database_migrations_url: str | None = None  # Falls back to database_url
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_ssl_mode: str = "prefer"  # disable, prefer, require, verify-ca, verify-full
    database_statement_cache_size: int = 0  # 0 for pgbouncer/supavisor transaction pooling
    database_lock_timeout_ms: int = 0  # 0 waits forever; a timed-out step fails with 55P03
    log_level_sql: str = "WARNING"

    # Admin access
    admin_api_key: str | None = None  # If set, maintenance endpoints require X-Admin-Key

    # Maintenance
    drift_report_limit: int = 20  # Max drifting projects returned by GET /projects/recompute

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Metrics
    metrics_api_key: str | None = None  # If set, /metrics requires this key

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: list[str]) -> list[str]:
        """Validate CORS origins - reject wildcards when credentials are used."""
        for origin in v:
            if origin == "*":
                raise ValueError(
                    "CORS wildcard '*' is not allowed when allow_credentials=True. "
                    "Specify explicit origins instead."
                )
        return v

    @field_validator("drift_report_limit")
    @classmethod
    def validate_drift_report_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DRIFT_REPORT_LIMIT must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
