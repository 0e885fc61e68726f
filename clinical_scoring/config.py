"""Scoring core configuration with validation."""
from typing import Literal
from functools import lru_cache
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the scoring core and its resilience components."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Clinical Scoring Core"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # Rate limiting (sliding window per actor)
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, ge=1, le=10000)
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=60.0, ge=1.0, le=3600.0)
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = Field(default=300.0, ge=1.0, le=86400.0)

    # Circuit breaker
    CIRCUIT_BREAKER_THRESHOLD: int = Field(default=3, ge=1, le=20)
    CIRCUIT_BREAKER_RESET_SECONDS: float = Field(default=60.0, ge=1.0, le=600.0)
    DEPENDENCY_TIMEOUT_SECONDS: float = Field(default=5.0, ge=0.1, le=30.0)

    # Cache
    CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_MAX_ENTRIES: int = Field(default=1000, ge=1, le=1_000_000)
    CACHE_TTL_EVALUATION: int = 300    # 5 minutes
    CACHE_TTL_DASHBOARD: int = 1800    # 30 minutes
    CACHE_TTL_DEGRADED: int = 30       # results scored with the readmission baseline

    # Risk stratification
    READMISSION_BASELINE_RISK: float = Field(default=0.15, ge=0.0, le=1.0)

    # Quality assessment
    QUALITY_STALENESS_DAYS: int = Field(default=30, ge=1, le=365)
    W_COMPLETENESS: float = Field(default=0.25, ge=0.0, le=1.0)
    W_CONSISTENCY: float = Field(default=0.20, ge=0.0, le=1.0)
    W_ACCURACY: float = Field(default=0.25, ge=0.0, le=1.0)
    W_TIMELINESS: float = Field(default=0.15, ge=0.0, le=1.0)
    W_COMPLIANCE: float = Field(default=0.15, ge=0.0, le=1.0)

    # Events
    EVENT_QUEUE_SIZE: int = Field(default=1000, ge=1, le=100_000)

    @model_validator(mode="after")
    def validate_quality_weights(self):
        """Validate quality weights sum to 1.0."""
        total = sum(self.quality_weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Quality weights must sum to 1.0, got {total}")
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production does not run in debug mode."""
        if self.APP_ENV == "production" and self.DEBUG:
            raise ValueError("DEBUG must be False in production")
        return self

    @property
    def quality_weights(self) -> dict:
        """Quality sub-score weights keyed by sub-score name."""
        return {
            "completeness": self.W_COMPLETENESS,
            "consistency": self.W_CONSISTENCY,
            "accuracy": self.W_ACCURACY,
            "timeliness": self.W_TIMELINESS,
            "compliance": self.W_COMPLIANCE,
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()
