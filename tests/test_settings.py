"""
Tests for settings and typed configuration objects
"""

import sys

import pytest
from loguru import logger

from dispatch_engine.config import CommissionRates, ScoringWeights, Settings, settings
from dispatch_engine.models import Technician
from dispatch_engine.utils import setup_logger


def test_defaults():
    config = Settings()

    assert config.platform_commission_rate == 0.10
    assert config.technician_payout_rate == 0.90
    assert config.aggregate_batch_size == 400
    assert config.default_max_jobs_per_day == 8


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DISPATCH_PLATFORM_COMMISSION_RATE", "0.15")
    monkeypatch.setenv("DISPATCH_SCORE_WEIGHT_RATING", "0.5")

    config = Settings()
    assert config.platform_commission_rate == 0.15
    assert ScoringWeights.from_settings(config).rating == 0.5
    assert CommissionRates.from_settings(config).platform_commission_rate == 0.15


def test_scoring_weights_validation():
    with pytest.raises(ValueError):
        ScoringWeights(skills=-0.1)
    with pytest.raises(ValueError):
        ScoringWeights(skills=0, availability=0, level=0, rating=0)


def test_commission_rates_validation():
    with pytest.raises(ValueError):
        CommissionRates(platform_commission_rate=1.2)


def test_setup_logger_writes_rotating_file(tmp_path):
    setup_logger(level="WARNING", log_dir=str(tmp_path / "logs"))
    logger.debug("backfill started")
    logger.complete()

    log_file = tmp_path / "logs" / "dispatch.log"
    assert log_file.exists()
    assert "backfill started" in log_file.read_text()

    logger.remove()
    logger.add(sys.stderr)


def test_technician_capacity_defaults_to_setting(monkeypatch):
    monkeypatch.setattr(settings, "default_max_jobs_per_day", 3)

    assert Technician(id="tech_new").max_jobs_per_day == 3
    assert Technician(id="tech_busy", max_jobs_per_day=5).max_jobs_per_day == 5
