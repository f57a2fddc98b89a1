"""
Configuration module for the booking lifecycle service.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase (service role key, bypasses RLS)
    supabase_url: str = ""
    supabase_key: str = ""

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: Optional[str] = None

    # Internal server-to-server calls (refund endpoint)
    internal_service_key: Optional[str] = None  # Falls back to supabase_key
    internal_api_url: Optional[str] = None  # Falls back to http://127.0.0.1:<port>
    internal_request_timeout_seconds: Optional[float] = 30.0  # "none" disables

    # Refund reconciliation job
    refund_reconciliation_enabled: bool = True
    refund_reconciliation_interval_minutes: int = 15
    refund_reconciliation_stale_minutes: int = 30

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"  # development, staging, production
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        env_parse_none_str="none",
    )

    @property
    def internal_secret(self) -> str:
        """Shared secret expected in the internal service header."""
        return self.internal_service_key or self.supabase_key

    @property
    def refund_endpoint_url(self) -> str:
        """Absolute URL of the internal refund endpoint."""
        base = self.internal_api_url or f"http://127.0.0.1:{self.port}"
        return f"{base.rstrip('/')}/stripe/refund"

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = [
            "supabase_url",
            "supabase_key",
            "stripe_secret_key",
        ]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Placeholder values copied from .env.example
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if self.environment == "production" and not self.stripe_webhook_secret:
            missing.append("stripe_webhook_secret")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
