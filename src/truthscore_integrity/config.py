"""Configuration management service with Pydantic Settings.

This module provides centralized configuration for the TruthScore
integrity engine. Every detector threshold and scoring constant can be
tuned from the environment without a code change.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str = Field(
        default="sqlite+aiosqlite:///truthscore.db",
        alias="DATABASE_URL",
        description="PostgreSQL or SQLite (aiosqlite) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string"
            )
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Redis connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith("redis://"):
            raise ValueError("REDIS_URL must start with redis://")
        return v


class ScoringSettings(BaseSettings):
    """TruthScore calculation settings."""

    model_config = SettingsConfigDict(env_prefix="SCORING_", populate_by_name=True)

    wilson_z: float = Field(
        default=1.96,
        alias="SCORING_WILSON_Z",
        description="Z value of the Wilson confidence interval (1.96 = 95%)",
        gt=0,
    )
    min_bets_for_leaderboard: int = Field(
        default=10,
        alias="SCORING_MIN_BETS_FOR_LEADERBOARD",
        description="Resolved bets required to appear in public rankings",
        ge=0,
    )
    min_bets_for_full_weight: int = Field(
        default=50,
        alias="SCORING_MIN_BETS_FOR_FULL_WEIGHT",
        description="Resolved bets at which activity and volume count fully",
        ge=1,
    )
    maturity_days: float = Field(
        default=14.0,
        alias="SCORING_MATURITY_DAYS",
        description="Account age below which the displayed score is capped at 50%",
        ge=0,
    )
    min_consistency_periods: int = Field(
        default=10,
        alias="SCORING_MIN_CONSISTENCY_PERIODS",
        description="Return periods required before a consistency bonus is awarded",
        ge=2,
    )
    cache_ttl_seconds: int = Field(
        default=300,
        alias="SCORING_CACHE_TTL_SECONDS",
        description="How long computed scores stay in the Redis cache",
        ge=1,
    )

    @field_validator("min_bets_for_full_weight")
    @classmethod
    def validate_full_weight(cls, v: int, info: ValidationInfo) -> int:
        """Full weight must not be reached before leaderboard eligibility."""
        minimum = info.data.get("min_bets_for_leaderboard")
        if minimum is not None and v < minimum:
            raise ValueError(
                "SCORING_MIN_BETS_FOR_FULL_WEIGHT must be >= SCORING_MIN_BETS_FOR_LEADERBOARD"
            )
        return v


class DetectorSettings(BaseSettings):
    """Anti-gaming detector thresholds."""

    model_config = SettingsConfigDict(env_prefix="DETECTOR_", populate_by_name=True)

    wash_epoch_threshold: int = Field(
        default=3,
        alias="DETECTOR_WASH_EPOCH_THRESHOLD",
        description="Epochs with bets on both sides before wash trading is flagged",
        ge=1,
    )
    wash_evidence_limit: int = Field(
        default=10,
        alias="DETECTOR_WASH_EVIDENCE_LIMIT",
        description="Maximum offending epochs listed in wash trading evidence",
        ge=1,
    )
    sybil_min_wallets: int = Field(
        default=3,
        alias="DETECTOR_SYBIL_MIN_WALLETS",
        description="Distinct wallets in one bucket before a Sybil cluster is flagged",
        ge=2,
    )
    sybil_time_bucket_seconds: int = Field(
        default=5,
        alias="DETECTOR_SYBIL_TIME_BUCKET_SECONDS",
        description="Width of the Sybil time bucket",
        ge=1,
    )
    sybil_amount_bucket: Decimal = Field(
        default=Decimal("100000000000000000"),
        alias="DETECTOR_SYBIL_AMOUNT_BUCKET",
        description="Width of the Sybil amount bucket in base units (0.1 BNB in wei)",
        gt=0,
    )
    sybil_report_all: bool = Field(
        default=False,
        alias="DETECTOR_SYBIL_REPORT_ALL",
        description="Report every qualifying bucket instead of the first",
    )
    anomaly_z_threshold: float = Field(
        default=3.29,
        alias="DETECTOR_ANOMALY_Z_THRESHOLD",
        description="Z score above which a win rate is statistically anomalous",
        gt=0,
    )
    anomaly_min_sample: int = Field(
        default=50,
        alias="DETECTOR_ANOMALY_MIN_SAMPLE",
        description="Resolved bets required before anomaly detection runs",
        ge=1,
    )
    anomaly_two_sided: bool = Field(
        default=False,
        alias="DETECTOR_ANOMALY_TWO_SIDED",
        description="Also flag improbably low win rates",
    )
    collusion_min_shared_epochs: int = Field(
        default=20,
        alias="DETECTOR_COLLUSION_MIN_SHARED_EPOCHS",
        description="Shared epochs required before a wallet pair can be collusive",
        ge=1,
    )
    collusion_overlap_threshold: float = Field(
        default=0.8,
        alias="DETECTOR_COLLUSION_OVERLAP_THRESHOLD",
        description="Epoch overlap ratio above which a pair is collusive",
        gt=0,
        le=1,
    )
    collusion_report_all: bool = Field(
        default=False,
        alias="DETECTOR_COLLUSION_REPORT_ALL",
        description="Report every qualifying pair instead of the first",
    )


class CascadeSettings(BaseSettings):
    """Copy-trading cascade prevention settings."""

    model_config = SettingsConfigDict(env_prefix="CASCADE_", populate_by_name=True)

    original_bet_window_seconds: int = Field(
        default=30,
        alias="CASCADE_ORIGINAL_BET_WINDOW_SECONDS",
        description="Only bets placed this early in a round are copied",
        ge=0,
    )
    max_traversal: int = Field(
        default=1000,
        alias="CASCADE_MAX_TRAVERSAL",
        description="Upper bound on wallets visited by a single graph walk",
        ge=1,
    )


class AlertSettings(BaseSettings):
    """Alert sink settings."""

    model_config = SettingsConfigDict(env_prefix="ALERT_", populate_by_name=True)

    dedup_window_hours: int = Field(
        default=24,
        alias="ALERT_DEDUP_WINDOW_HOURS",
        description="Suppress repeat alerts of one type for a wallet within this window",
        ge=1,
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from truthscore_integrity.config import get_settings

        settings = get_settings()
        print(settings.detector.wash_epoch_threshold)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    detector: DetectorSettings = Field(default_factory=DetectorSettings)
    cascade: CascadeSettings = Field(default_factory=CascadeSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url),
            "scoring": {
                "wilson_z": str(self.scoring.wilson_z),
                "min_bets_for_leaderboard": str(self.scoring.min_bets_for_leaderboard),
                "min_bets_for_full_weight": str(self.scoring.min_bets_for_full_weight),
                "maturity_days": str(self.scoring.maturity_days),
            },
            "detector": {
                "wash_epoch_threshold": str(self.detector.wash_epoch_threshold),
                "sybil_min_wallets": str(self.detector.sybil_min_wallets),
                "sybil_time_bucket_seconds": str(self.detector.sybil_time_bucket_seconds),
                "anomaly_z_threshold": str(self.detector.anomaly_z_threshold),
                "anomaly_min_sample": str(self.detector.anomaly_min_sample),
                "collusion_min_shared_epochs": str(self.detector.collusion_min_shared_epochs),
                "collusion_overlap_threshold": str(self.detector.collusion_overlap_threshold),
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
