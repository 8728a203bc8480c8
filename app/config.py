"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with .env file support.
"""
from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Record store (read-only access to test runs / test executions)
    DATABASE_URL: str = "sqlite:///./testpulse.db"

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate DATABASE_URL has an allowed scheme to prevent injection."""
        allowed_schemes = (
            'sqlite:///', 'postgresql://', 'postgresql+psycopg2://',
            'mysql://', 'mysql+pymysql://'
        )
        if not v.startswith(allowed_schemes):
            raise ValueError(
                f'Invalid database URL scheme. Allowed schemes: {", ".join(allowed_schemes)}'
            )
        return v

    # Application
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost:8080"

    # Security
    API_KEY: str = ""  # Optional API key for authentication
    ORGANIZATION_HEADER: str = "X-Organization-Id"  # Tenant resolved by the upstream auth layer

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 100

    # Analytics defaults
    DEFAULT_TIMEFRAME: str = "week"  # day, week or month
    DEFAULT_RECENT_EXECUTIONS: int = 5  # Size of recentExecutions in flaky test reports

    @field_validator('DEFAULT_TIMEFRAME')
    @classmethod
    def validate_default_timeframe(cls, v: str) -> str:
        """Only the three supported bucketing granularities are accepted."""
        if v not in ('day', 'week', 'month'):
            raise ValueError('DEFAULT_TIMEFRAME must be one of: day, week, month')
        return v

    @field_validator('DEFAULT_RECENT_EXECUTIONS')
    @classmethod
    def validate_recent_executions(cls, v: int) -> int:
        if v < 1:
            raise ValueError('DEFAULT_RECENT_EXECUTIONS must be at least 1')
        return v

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra='ignore'  # Allow extra fields in .env without validation errors
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.

    Returns:
        Settings instance
    """
    return Settings()
