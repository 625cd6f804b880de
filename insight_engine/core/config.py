"""
Configuration module with strict validation.

Key principles:
- APP STARTUP does NOT require any provider credential
- A provider without a credential is simply not queried (and reported as such)
- All retry, circuit breaker, cache and deadline settings are configurable
- Safe defaults for all optional settings
"""
from typing import Optional, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Listings (MLS / RESO Web API)
    listings_base_url: str = Field(
        default="https://api.mlsgrid.com",
        description="Base URL of the listings provider"
    )
    listings_access_token: Optional[str] = Field(
        default=None,
        description="Bearer token for the listings provider"
    )

    # Automated valuation provider
    valuation_base_url: str = Field(
        default="https://api.bridgedataoutput.com/api/v2",
        description="Base URL of the valuation provider"
    )
    valuation_api_key: Optional[str] = Field(
        default=None,
        description="API key for the valuation provider (sent as X-API-Key)"
    )

    # County assessor / recorder data
    public_records_base_url: str = Field(
        default="https://api.propertydata.com",
        description="Base URL of the public records provider"
    )
    public_records_api_key: Optional[str] = Field(
        default=None,
        description="Bearer token for the public records provider"
    )

    # Auxiliary providers (query-string keys)
    walk_score_api_key: Optional[str] = Field(default=None)
    census_api_key: Optional[str] = Field(default=None)
    fred_api_key: Optional[str] = Field(default=None)

    # HTTP
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request read timeout in seconds"
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Connection timeout in seconds"
    )
    provider_deadline: float = Field(
        default=45.0,
        gt=0,
        description="Upper bound for one provider call including all retries"
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retries for failed provider calls"
    )
    retry_initial_delay: float = Field(
        default=1.0,
        ge=0,
        description="Delay before the first retry, in seconds"
    )
    retry_max_delay: float = Field(
        default=8.0,
        ge=0,
        description="Cap on the delay between retries, in seconds"
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff factor for retries"
    )

    # Circuit breaker
    circuit_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before a provider's circuit opens"
    )
    circuit_reset_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds an open circuit waits before admitting a probe"
    )

    # Cache
    cache_sweep_interval: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between sweeps of expired cache entries"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("listings_base_url", "valuation_base_url", "public_records_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def missing_credentials(self) -> List[str]:
        """
        List the core providers that have no credential configured.

        Missing credentials are not fatal: the aggregator skips those
        providers and the quality score reflects it.
        """
        missing = []
        if not self.listings_access_token:
            missing.append("listings")
        if not self.valuation_api_key:
            missing.append("valuation")
        if not self.public_records_api_key:
            missing.append("public_records")
        return missing


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    This pattern allows:
    - Easy testing (can reset settings between tests)
    - Lazy loading (only loads when first accessed)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
