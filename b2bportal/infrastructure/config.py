"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://b2bportal:b2bportal_dev_password@db:5432/b2bportal"

    # Buyer authentication
    buyer_token_secret: str = "dev-buyer-token-secret-change-in-production"
    buyer_token_ttl_seconds: int = 86400

    # Payment gateway (Cashfree PG)
    cashfree_base_url: str = "https://sandbox.cashfree.com/pg"
    cashfree_app_id: str = "dev-cashfree-app-id"
    cashfree_secret_key: str = "dev-cashfree-secret-key"
    cashfree_api_version: str = "2023-08-01"
    cashfree_env: str = "sandbox"
    gateway_timeout_seconds: float = 10.0

    # Storefront, first comma-separated entry is used for return URLs
    client_url: str = "http://localhost:5173"

    # Orders
    currency: str = "INR"
    order_number_prefix: str = "GFT-B2B"
    default_cancel_reason: str = "Cancelled by corporate client"

    # Notifications
    notification_webhook_url: str | None = None

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def return_base_url(self) -> str:
        """Get the storefront URL the gateway redirects back to."""
        first = self.client_url.split(",")[0].strip()
        return first or "http://localhost:5173"


settings = Settings()
