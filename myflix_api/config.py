"""Configuration using pydantic-settings."""

import os
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation and constants."""

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 8080
    log_level: str = "INFO"
    log_file: str | None = None

    environment: Literal["development", "docker", "lambda"] = "development"

    database_url: str = "sqlite+aiosqlite:///./data/myflix.db"

    aws_region: str = "us-east-1"
    dynamodb_table: str = "myflix"

    rate_limit: str = "30/minute"

    # JWT settings
    secret_key: str = "your-secret-key-change-in-production"  # noqa: S105
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60 * 24 * 7

    # Password hashing
    bcrypt_rounds: int = 12

    # Favorites
    verify_favorite_movies: bool = True

    # Storage retry settings
    storage_retries: int = 3

    @property
    def is_lambda_environment(self) -> bool:
        """Check if running in AWS Lambda."""
        return self.environment == "lambda" or bool(os.getenv("AWS_LAMBDA_FUNCTION_NAME"))

    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL based on environment."""
        if self.is_lambda_environment:
            return f"dynamodb://{self.dynamodb_table}?region={self.aws_region}"
        return self.database_url

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to sign tokens with the placeholder key outside development."""
        if self.environment != "development" and self.secret_key.startswith("your-secret-key"):
            raise ValueError(
                "MYFLIX_SECRET_KEY must be set outside development. "
                "Please set the MYFLIX_SECRET_KEY environment variable."
            )
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return self

    @model_validator(mode="before")
    @classmethod
    def detect_environment(cls, data: dict) -> dict:
        """Set environment based on MYFLIX_ENV or AWS Lambda detection."""
        env = os.getenv("MYFLIX_ENV", "").lower()
        if env in ("lambda", "docker", "development"):
            data["environment"] = env
        elif os.getenv("AWS_LAMBDA_FUNCTION_NAME") and "environment" not in data:
            data["environment"] = "lambda"
        return data

    class Config:
        """Pydantic config."""

        env_prefix = "MYFLIX_"
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings
