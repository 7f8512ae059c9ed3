"""
Configuration management for the dispatch engine.
Loads settings from environment variables and the project .env file.
"""

from pathlib import Path
from dataclasses import dataclass
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from loguru import logger

# This file is at dispatch_engine/config/settings.py, so project root is 3 levels up
_project_root = Path(__file__).resolve().parent.parent.parent

PROJECT_ROOT = _project_root

_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(dotenv_path=_env_file, override=False)
    logger.debug(f"Loaded .env from: {_env_file}")
else:
    load_dotenv(override=False)


class Settings(BaseSettings):
    """Engine settings from environment variables (prefix DISPATCH_)."""

    # Settlement
    platform_commission_rate: float = Field(default=0.10, ge=0.0, le=1.0)
    technician_payout_rate: float = Field(default=0.90, ge=0.0, le=1.0)  # Share of a price change that reaches technicians
    currency_code: str = Field(default="GHC")

    # Technician Directory
    default_max_jobs_per_day: int = Field(default=8, ge=1)

    # Dispatch Recommender scoring weights
    score_weight_skills: float = Field(default=0.45, ge=0.0)
    score_weight_availability: float = Field(default=0.25, ge=0.0)
    score_weight_level: float = Field(default=0.10, ge=0.0)
    score_weight_rating: float = Field(default=0.20, ge=0.0)
    level_surplus_cap: int = Field(default=2, ge=1)  # Levels above minimum that earn the full bonus
    unrated_technician_rating: float = Field(default=3.0, ge=0.0, le=5.0)
    recommendation_limit: int = Field(default=10, ge=1)
    max_supporting_pool: int = Field(default=12, ge=1)  # Supporting members considered per team composition

    # Revenue Aggregator
    daily_top_products_limit: int = Field(default=5, ge=1)
    backfill_top_products_limit: int = Field(default=10, ge=1)
    all_time_top_products_limit: int = Field(default=25, ge=1)
    aggregate_batch_size: int = Field(default=400, ge=1, le=500)

    # Storage
    database_url: str = Field(default="sqlite:///data/dispatch.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_dir: str = Field(default="")  # Empty disables the rotating file sink

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        env_file=str(_project_root / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the recommender's match score terms"""
    skills: float = 0.45
    availability: float = 0.25
    level: float = 0.10
    rating: float = 0.20
    level_surplus_cap: int = 2
    unrated_rating: float = 3.0

    def __post_init__(self):
        if min(self.skills, self.availability, self.level, self.rating) < 0:
            raise ValueError("Scoring weights must be non-negative")
        if self.total <= 0:
            raise ValueError("At least one scoring weight must be positive")

    @property
    def total(self) -> float:
        return self.skills + self.availability + self.level + self.rating

    @classmethod
    def from_settings(cls, config: "Settings") -> "ScoringWeights":
        return cls(
            skills=config.score_weight_skills,
            availability=config.score_weight_availability,
            level=config.score_weight_level,
            rating=config.score_weight_rating,
            level_surplus_cap=config.level_surplus_cap,
            unrated_rating=config.unrated_technician_rating,
        )


@dataclass(frozen=True)
class CommissionRates:
    """Platform and technician rates used by settlement"""
    platform_commission_rate: float = 0.10
    technician_payout_rate: float = 0.90
    currency_code: str = "GHC"

    def __post_init__(self):
        for name in ("platform_commission_rate", "technician_payout_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

    @classmethod
    def from_settings(cls, config: "Settings") -> "CommissionRates":
        return cls(
            platform_commission_rate=config.platform_commission_rate,
            technician_payout_rate=config.technician_payout_rate,
            currency_code=config.currency_code,
        )


# Create global settings instance
settings = Settings()
