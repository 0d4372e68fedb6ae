"""
Configuration module for the Returns & Exchanges Orchestrator.
Loads settings from environment variables (and an optional .env file).
"""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Commerce Backend Configuration
    commerce_api_url: str = Field(
        default="http://localhost:8000/api",
        alias="COMMERCE_API_URL",
        description="Base URL of the remote commerce backend API"
    )
    commerce_api_token: str = Field(
        default="",
        alias="COMMERCE_API_TOKEN",
        description="Fallback bearer token when the caller does not forward one"
    )
    commerce_api_timeout: Optional[float] = Field(
        default=None,
        alias="COMMERCE_API_TIMEOUT",
        description="Per-request timeout in seconds (unset means no client-side timeout)"
    )

    # Application Configuration
    app_host: str = Field(
        default="0.0.0.0",
        alias="APP_HOST",
        description="Host to bind the application"
    )
    app_port: int = Field(
        default=8080,
        alias="APP_PORT",
        description="Port to bind the application"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    # Presentation
    currency_symbol: str = Field(
        default="৳",
        alias="CURRENCY_SYMBOL",
        description="Currency symbol used in operator notifications"
    )

    # Saga Defaults
    exchange_payment_method_id: int = Field(
        default=1,
        alias="EXCHANGE_PAYMENT_METHOD_ID",
        description="Payment method recorded on replacement orders created by an exchange"
    )
    quality_check_notes: str = Field(
        default="Quality check auto-passed at counter",
        alias="QUALITY_CHECK_NOTES",
        description="Notes attached when a return is auto-passed through inspection"
    )
    approval_notes: str = Field(
        default="Approved at counter",
        alias="APPROVAL_NOTES",
        description="Internal notes attached when a return is approved"
    )
    saga_result_history: int = Field(
        default=200,
        alias="SAGA_RESULT_HISTORY",
        description="Number of finished saga results kept in memory for lookup"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


# Global settings instance
settings = Settings()
