"""
Configuration management for HOUSECALL API.
Loads environment variables and provides typed configuration.
"""
from typing import List, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ========================================================================
    # Database Configuration
    # ========================================================================
    database_url: str = "sqlite:///./housecall.db"
    db_echo: bool = False

    # ========================================================================
    # Redis Configuration
    # ========================================================================
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = True

    # ========================================================================
    # API Configuration
    # ========================================================================
    api_secret_key: str = "dev_secret_key_change_in_production"
    api_key_header: str = "X-API-Key"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # ========================================================================
    # CORS Configuration
    # ========================================================================
    cors_origins: str = "http://localhost:3000,http://localhost:19006"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ========================================================================
    # Security Configuration
    # ========================================================================
    auth_enabled: bool = True
    bcrypt_rounds: int = 12

    # ========================================================================
    # Rate Limiting
    # ========================================================================
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 60

    # ========================================================================
    # Application Configuration
    # ========================================================================
    environment: str = "development"
    log_level: str = "info"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    # ========================================================================
    # Coverage Policy
    # ========================================================================
    # While false, bookings are accepted at any location; the matched zone
    # is still recorded on the booking.
    enforce_zone_restriction: bool = False
    # Raise instead of skipping a zone whose stored boundary is malformed
    zone_matching_fail_closed: bool = False

    # ========================================================================
    # Geocoding (Nominatim-compatible provider)
    # ========================================================================
    geocoding_base_url: str = "https://nominatim.openstreetmap.org"
    geocoding_user_agent: str = "HousecallBooking/1.0 (support@example.com)"
    geocoding_timeout: float = 8.0
    geocoding_country_codes: Optional[str] = "ca"
    default_country: str = "Canada"

    # ========================================================================
    # Pydantic Settings Configuration
    # ========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()


# Convenience exports
settings = get_settings()

# Validate critical settings in production
if settings.is_production:
    if settings.api_secret_key == "dev_secret_key_change_in_production":
        raise ValueError(
            "API_SECRET_KEY must be changed in production! "
            "Generate one with: openssl rand -hex 32"
        )

    if not settings.auth_enabled:
        raise ValueError("AUTH_ENABLED must be true in production!")

    if "localhost" in settings.cors_origins.lower():
        raise ValueError(
            "CORS_ORIGINS must not include localhost in production!"
        )
