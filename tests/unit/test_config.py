"""Tests for configuration defaults, env overrides and timing checks."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from photoflow.core.config import AppSettings, ProcessingConfig, SQSConfig, WorkerConfig


def test_default_settings():
    settings = AppSettings()
    assert settings.environment == "dev"
    assert settings.backend == "memory"
    assert settings.cache.list_ttl == 30
    assert settings.cache.detail_ttl == 60


def test_processing_defaults():
    config = ProcessingConfig()
    assert config.min_delay_ms == 2000
    assert config.max_delay_ms == 5000
    assert config.success_rate == 0.9


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PHOTOFLOW_BACKEND", "aws")
    monkeypatch.setenv("PHOTOFLOW_WORKER_CONCURRENCY", "8")
    assert AppSettings().backend == "aws"
    assert WorkerConfig().concurrency == 8


class TestTimingChecks:
    def test_lock_ttl_must_exceed_max_delay(self):
        with pytest.raises(ValidationError, match="lock_ttl_ms"):
            AppSettings(worker=WorkerConfig(lock_ttl_ms=5000))

    def test_visibility_timeout_must_cover_lock_ttl(self):
        with pytest.raises(ValidationError, match="visibility_timeout"):
            AppSettings(sqs=SQSConfig(visibility_timeout=10))

    def test_min_delay_above_max_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(processing=ProcessingConfig(min_delay_ms=6000, max_delay_ms=5000))

    @pytest.mark.parametrize("rate", [-0.1, 1.5])
    def test_success_rate_out_of_range(self, rate):
        with pytest.raises(ValidationError):
            AppSettings(processing=ProcessingConfig(success_rate=rate))
