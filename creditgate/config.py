"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 1800
    run_migrations: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_title: str = "Credit Gate API"
    api_version: str = "0.1.0"
    api_description: str = "Credit-metered access to AI image and resume operations"
    api_prefix: str = "/api"
    cors_origins: str = "*"  # Comma-separated

    # Supabase Auth (GoTrue)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""  # Required for admin user listing/deletion

    # Stability AI
    stability_api_key: str = ""
    stability_api_base: str = "https://api.stability.ai"
    stability_engine_id: str = "stable-diffusion-xl-1024-v1-0"

    # Razorpay
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_webhook_secret: str = ""
    razorpay_api_base: str = "https://api.razorpay.com/v1"
    default_currency: str = "INR"
    credit_price_minor: int = 100  # paise per purchased credit

    # Outbound HTTP (no retries)
    external_request_timeout: float = 120.0

    # Pricing Configuration
    text_to_image_cost: int = 2
    background_removal_cost: int = 1
    resume_analysis_cost: int = 1
    signup_credits: int = 10
    record_admin_usage: bool = False  # Admins are unmetered; log zero-cost rows when True

    # Uploads
    upload_dir: str = "uploads"
    max_upload_pixels: int = 4_194_304
    max_upload_dimension: int = 2048
    max_upload_bytes: int = 10 * 1024 * 1024

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "credit-gate-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        Vendor credentials are checked lazily by the clients that need them,
        so a missing Razorpay key only disables payments.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        for name in ("text_to_image_cost", "background_removal_cost", "resume_analysis_cost"):
            if getattr(self, name) <= 0:
                errors.append(f"{name.upper()} must be a positive integer")

        if self.max_upload_bytes <= 0:
            errors.append("MAX_UPLOAD_BYTES must be a positive integer")

        if self.credit_price_minor <= 0:
            errors.append("CREDIT_PRICE_MINOR must be a positive integer")

        if self.signup_credits < 0:
            errors.append("SIGNUP_CREDITS cannot be negative")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def async_database_url(self) -> str:
        """Database URL with the asyncpg driver selected."""
        url = self.database_url
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def allowed_origins(self) -> list[str]:
        """CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
