"""
Configuration management for the LMS push producer.

Loads and validates all required environment variables with clear error messages.
Uses Pydantic Settings for type safety and validation.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    All required variables must be set, or the application will fail fast
    with a clear error message indicating which variables are missing.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # Moodle LMS Configuration
    moodle_base_url: str = Field(
        ...,
        description="Base URL of the Moodle instance (e.g. https://moodle.example.edu)"
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for LMS and push requests"
    )
    
    # Supabase Configuration
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_service_role_key: str = Field(
        ...,
        description="Supabase service role key (not anon key)"
    )
    
    # Firebase Cloud Messaging Configuration
    fcm_project_id: str = Field(
        ...,
        description="Firebase project ID used in the FCM v1 endpoint"
    )
    fcm_access_token: str = Field(
        ...,
        description="OAuth2 access token for the FCM v1 API"
    )
    
    # Polling Configuration
    batch_size: int = Field(
        default=50,
        gt=0,
        description="Number of accounts fetched per batch"
    )
    batch_interval_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Pause between two batches"
    )
    
    # Optional Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone used to render deadline times in notifications"
    )
    
    @field_validator("moodle_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL doesn't have trailing slash."""
        return v.rstrip("/")
    
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return upper
    
    @property
    def moodle_rest_url(self) -> str:
        """Full URL of the Moodle web service REST endpoint."""
        return f"{self.moodle_base_url}/webservice/rest/server.php"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.
    
    Returns:
        Settings: Validated application settings
        
    Raises:
        ValidationError: If required environment variables are missing or invalid
    """
    return Settings()


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure application logging.
    
    Args:
        settings: Optional settings instance, will be loaded if not provided
        
    Returns:
        logging.Logger: Configured logger instance
    """
    if settings is None:
        settings = get_settings()
    
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)
    
    return logging.getLogger("lms_push")
