"""Pydantic settings for the pair-vault engine."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PAIRVAULT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Persistence
    storage_dir: Path = Field(default=Path(".pairvault"), description="Ledger snapshot directory")

    # Planner
    default_liquidation_threshold: int = Field(
        default=0, ge=0, description="Dust threshold (raw units) for assets without an explicit value"
    )
    use_pool_proportions: bool = Field(
        default=True, description="Derive the target proportion from the pool tick ratio"
    )
    target_prop_b: Optional[int] = Field(
        default=None,
        ge=0,
        le=10**18,
        description="Target share of B (18 decimals) when pool proportions are off; unset follows the pool",
    )

    # Withdrawals
    withdraw_liquidity_margin_pct: int = Field(
        default=101, ge=100, le=200, description="Liquidity over-withdraw margin, in percent"
    )
    max_withdraw_iterations: int = Field(
        default=5, ge=1, le=50, description="Planner iterations allowed while closing debt"
    )

    # Reconciliation
    ledger_drift_tolerance: int = Field(
        default=0, ge=0, description="Drift (raw units) tolerated before an entry is flagged"
    )

    log_level: str = Field(default="INFO", description="Root log level for the engine loggers")

    @field_validator("storage_dir", mode="before")
    @classmethod
    def parse_storage_dir(cls, v):
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        """Normalize log level names."""
        if isinstance(v, str):
            v = v.strip().upper() or "INFO"
            if not isinstance(logging.getLevelName(v), int):
                raise ValueError(f"Unknown log level: {v}")
        return v

    def ensure_storage_dir(self) -> Path:
        """Ensure storage directory exists and return it."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        return self.storage_dir


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Apply settings.log_level to the engine loggers, adding a root handler if none exists."""
    settings = settings or get_settings()
    logging.basicConfig(format="%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    logging.getLogger("pairvault").setLevel(settings.log_level)
