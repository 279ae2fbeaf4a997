from typing import List, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API Configuration
    api_v1_prefix: str = Field(default="/api/v1")
    api_title: str = Field(default="Client Onboarding OS API")
    api_version: str = Field(default="1.0.0")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")

    # Environment (for conditional validation)
    environment: str = Field(default="development")

    # Redis (RQ broker)
    redis_url: str = Field(default="redis://localhost:6379")

    # Supabase
    supabase_url: str
    supabase_anon_key: str
    supabase_service_key: str
    storage_bucket: str = Field(default="client-files")

    # Public app URL, used to build portal and dashboard links
    app_url: str = Field(default="http://localhost:3000")

    # CORS
    cors_origins: Union[str, List[str]] = Field(default="http://localhost:3000")
    cors_allow_credentials: bool = Field(default=True)

    # Rate Limiting (portal endpoints are token-authenticated, keep them tight)
    rate_limit_requests: int = Field(default=100)
    rate_limit_portal_requests: int = Field(default=30)
    rate_limit_enabled: bool = Field(default=True)

    # Sentry (disabled when empty)
    sentry_dsn: str = Field(default="")

    # AWS SES Email
    aws_access_key_id: str = Field(default="")
    aws_secret_access_key: str = Field(default="")
    aws_ses_region: str = Field(default="us-east-1")
    email_from: str = Field(default="onboarding@clientonboarding.os")

    # Scheduled job auth: Authorization: Bearer <CRON_SECRET>
    cron_secret: str = Field(default="")

    # Worker callbacks: X-Internal-Secret header
    internal_api_secret: str = Field(default="")
    internal_api_url: str = Field(default="http://localhost:8000")

    # Reminder sweep
    reminder_inactivity_days: int = Field(default=3)
    reminder_window_hours: int = Field(default=24)

    # Portal tokens: bytes drawn from the CSPRNG per token
    portal_token_bytes: int = Field(default=32)

    # Uploads
    upload_max_file_size_mb: int = Field(default=10)

    @field_validator("portal_token_bytes")
    @classmethod
    def validate_token_entropy(cls, v: int) -> int:
        if v < 16:
            raise ValueError("portal_token_bytes must be at least 16 (128 bits)")
        return v

    @model_validator(mode="after")
    def validate_production_cron_secret(self):
        """Ensure CRON_SECRET is set in production so the reminder sweep is not public"""
        if self.environment == "production" and not self.cron_secret:
            raise ValueError(
                "CRON_SECRET must be explicitly set via environment variable in production. "
                "Generate one with: openssl rand -hex 32"
            )
        return self

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            # Handle comma-separated string
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("cors_origins", mode="after")
    @classmethod
    def ensure_cors_is_list(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
