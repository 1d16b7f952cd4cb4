"""
Configuration management using Pydantic Settings.
Loads configuration from environment variables and .env file.
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Key service Configuration
    KMS_PROVIDER: str = "aws-kms"  # Options: aws-kms, local
    KMS_KEY_ID: Optional[str] = None  # Customer master key id or ARN used for new envelopes

    # AWS KMS Configuration
    AWS_REGION: Optional[str] = None  # Falls back to the boto3 default region chain
    KMS_ENDPOINT_URL: Optional[str] = None  # Override for VPC endpoints / localstack

    # Local KMS Configuration (development and tests only)
    LOCAL_KMS_MASTER_KEY: Optional[str] = None  # Required when using local provider

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    APP_LOG_LEVEL: Optional[str] = None
    BOTOCORE_LOG_LEVEL: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def kms_key_id(self) -> str:
        """Configured key id with surrounding whitespace removed ("" when unset)."""
        return (self.KMS_KEY_ID or "").strip()


settings = Settings()
