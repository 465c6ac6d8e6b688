"""
Configuration management for DealerStructure.
Loads settings from environment variables and .env file.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Massive (Polygon) API
    massive_api_key: str = Field(..., description="Massive API key")
    massive_base_url: str = Field(
        default="https://api.massive.com",
        description="Massive REST base URL"
    )
    request_timeout: float = Field(default=15.0, gt=0, description="Seconds per HTTP attempt")

    # Retry policy (attempt counts per collaborator)
    fetch_max_attempts: int = Field(default=3, ge=1, le=10)
    spot_max_attempts: int = Field(default=2, ge=1, le=10)
    discovery_max_attempts: int = Field(default=2, ge=1, le=10)
    backoff_base_ms: int = Field(default=200, ge=0, description="First backoff delay, doubled per retry")

    # Chain pagination
    chain_page_limit: int = Field(default=250, ge=1, le=250)
    chain_max_pages: int = Field(default=10, ge=1, le=50)

    # Caching
    structure_cache_ttl: int = Field(default=60, ge=1, description="Seconds a computed structure stays valid")
    holiday_cache_ttl: int = Field(default=86400, ge=60)

    # Overall deadline for one structure request (None = no deadline)
    structure_timeout: Optional[float] = Field(default=None, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default="logs/dealerstructure.log", description="Empty disables the file sink")


class EngineConfig:
    """Static configuration for the analytics layers."""

    # Contract multiplier (shares per contract)
    CONTRACT_MULTIPLIER = 100

    # Data-quality gates
    NULL_OI_MAX_RATIO = 0.20
    GAMMA_COVERAGE_MIN = 0.80
    GAMMA_COVERAGE_MEDIUM = 0.60

    # Gamma flip search band (fraction of spot)
    FLIP_BAND = 0.15

    # Call wall / put floor search band (fraction of spot)
    WALL_BAND = 0.20

    # Gamma squeeze heuristic
    SQUEEZE_MIN_NET_GEX = 50_000_000
    SQUEEZE_CALL_WALL_PROXIMITY = 0.98
    SQUEEZE_MAX_PCR = 0.6

    # Squeeze risk score weights
    SQUEEZE_RISK_WEIGHTS = {
        "positive_gex": 35,
        "expiry_today": 25,
        "expiry_near": 15,
        "pcr_extreme": 20,
        "near_flip": 20,
    }
    SQUEEZE_RISK_LEVELS = [(70, "EXTREME"), (50, "HIGH"), (30, "MEDIUM")]
    FLIP_PROXIMITY = 0.02

    # OI concentration near spot
    CONCENTRATION_BAND = 0.05
    CONCENTRATION_STICKY = 70
    CONCENTRATION_NORMAL = 40

    # Validation ranges
    PCR_VALID_RANGE = (0.05, 10.0)
    MAX_PAIN_MAX_DEVIATION = 0.30
    VALIDATION_MIN_GAMMA_COVERAGE = 0.50

    # Discovery
    MAX_PUBLISHED_EXPIRATIONS = 10
    REFERENCE_PAGE_LIMIT = 1000
    SNAPSHOT_SAMPLE_LIMIT = 250

    # Market sessions (minutes after midnight, US/Eastern)
    PREMARKET_OPEN = 4 * 60
    REGULAR_OPEN = 9 * 60 + 30
    REGULAR_CLOSE = 16 * 60
    POSTMARKET_CLOSE = 20 * 60

    # Exchanges whose closures matter for weekly expirations
    HOLIDAY_EXCHANGES = ("NYSE", "NASDAQ")


def get_settings() -> Settings:
    """Get application settings, loading from .env file."""
    return Settings()
