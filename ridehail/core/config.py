"""
Configuration settings for the ride-hailing API.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, Field
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    """Application settings loaded from the environment and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        validate_assignment=True,
        extra="forbid",
    )

    # Environment
    ENVIRONMENT: str = Field(default="development", description="Application environment")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Ride Hailing API"

    # Database Settings - No default credentials
    DATABASE_URL: str = Field(..., description="Database connection URL")

    # Maps provider
    MAPBOX_TOKEN: str = Field(default="", description="Access token for the maps provider")
    MAPBOX_BASE_URL: str = "https://api.mapbox.com"
    MAPS_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0.0, le=60.0)
    MAPS_COUNTRY: str = "BR"

    # Fallback location (Catalão, GO) as [longitude, latitude]
    DEFAULT_LONGITUDE: float = Field(default=-47.9466, ge=-180, le=180)
    DEFAULT_LATITUDE: float = Field(default=-18.1661, ge=-90, le=90)
    # Geocoding bias box: min lng, min lat, max lng, max lat
    SEARCH_BBOX: List[float] = Field(default=[-48.4466, -18.6661, -47.4466, -17.6661])

    # Pricing Settings
    PRICING_TIMEZONE: str = "America/Sao_Paulo"
    FALLBACK_SPEED_KMH: float = Field(default=30.0, gt=0.0)

    # Ride creation retries on transient database errors
    RIDE_WRITE_MAX_RETRIES: int = Field(default=3, ge=0, le=10)
    RIDE_WRITE_BACKOFF_SECONDS: float = Field(default=1.0, ge=0.0)

    # Read-through caches
    CATEGORY_CACHE_TTL_SECONDS: int = Field(default=24 * 60 * 60, ge=0)
    RIDE_HISTORY_CACHE_TTL_SECONDS: int = Field(default=30 * 60, ge=0)

    # Administration
    ADMIN_EMAILS: List[str] = Field(default=[], description="Emails allowed on admin endpoints")
    SEED_CATALOG: bool = Field(default=False, description="Seed default categories on startup")

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    LOG_FILE: Optional[str] = "logs/app.log"

    # Security Headers
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:5173"], description="Allowed CORS origins")

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v):
        if not v.startswith(('postgresql://', 'postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError("DATABASE_URL must be a PostgreSQL or aiosqlite URL")
        return v

    @field_validator('ENVIRONMENT')
    @classmethod
    def validate_environment(cls, v):
        allowed_envs = ['development', 'test', 'staging', 'production']
        if v not in allowed_envs:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed_envs}")
        return v

    @field_validator('SEARCH_BBOX')
    @classmethod
    def validate_bbox(cls, v):
        if len(v) != 4 or v[0] >= v[2] or v[1] >= v[3]:
            raise ValueError("SEARCH_BBOX must be [min_lng, min_lat, max_lng, max_lat]")
        return v

    @field_validator('ADMIN_EMAILS')
    @classmethod
    def normalize_admin_emails(cls, v):
        return [email.strip().lower() for email in v if email.strip()]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    @property
    def default_coordinates(self) -> List[float]:
        return [self.DEFAULT_LONGITUDE, self.DEFAULT_LATITUDE]

# Global settings instance with error handling
try:
    settings = Settings()
    if settings.is_production() and settings.DEBUG:
        logger.warning("DEBUG mode is enabled in production environment")
except Exception as e:
    logger.error(f"Failed to load settings: {e}")
    raise
