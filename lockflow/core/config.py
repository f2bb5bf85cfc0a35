"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. http://localhost:3000,https://lockflow.app). Empty = default list in code.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # ===========================================
    # SUPABASE (identity provider + object storage)
    # ===========================================
    supabase_url: str  # Required, no default
    supabase_key: str  # Required, no default
    storage_bucket: str = "Lockflow"
    http_client_timeout: float = 10.0

    # ===========================================
    # UNLOCK ENGINE
    # ===========================================
    signed_url_ttl_seconds: int = 3600  # 1 hour
    countdown_tick_seconds: float = 1.0
    task_verification_delay_seconds: float = 2.0
    code_error_display_seconds: float = 3.0
    # Idle unlock sessions are torn down after this (timers cancelled)
    unlock_session_ttl_seconds: int = 3600
    # Live sessions held in memory; opening more is refused with 503
    unlock_max_sessions: int = 10000
    unlock_session_secret: str  # Required, no default
    # celery | database
    unlock_counter_backend: str = "celery"
    unlock_idempotency_ttl: int = 86400

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("unlock_counter_backend")
    @classmethod
    def validate_counter_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("celery", "database"):
            raise ValueError("unlock_counter_backend must be 'celery' or 'database'")
        return v

    @field_validator("unlock_session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        """Ensure session secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("unlock_session_secret must be at least 16 characters")
        if v in ("changeme", "secret", "password"):
            raise ValueError("unlock_session_secret is too weak, please change it")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
