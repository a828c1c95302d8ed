"""
Tests for src/config/settings.py

Environment variables are set with monkeypatch and the cached singleton is
reset around each test.
"""

from pathlib import Path

import pytest

from src.config.settings import (
    ConversionSettings,
    Settings,
    get_settings,
    reset_settings,
)
from src.orchestration.converter import ConversionOptions

ENV_VARS = ("SUBCAM_MIN_CONFIDENCE", "SUBCAM_MIN_QUALITY", "SUBCAM_OUTPUT_DIR", "SUBCAM_LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def test_defaults_when_unset():
    settings = ConversionSettings.from_env()

    assert settings.min_confidence is None
    assert settings.min_quality is None
    assert settings.output_dir == Path("data/converted")
    assert settings.log_level == "INFO"


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("SUBCAM_MIN_CONFIDENCE", "3")
    monkeypatch.setenv("SUBCAM_MIN_QUALITY", " 2 ")
    monkeypatch.setenv("SUBCAM_OUTPUT_DIR", "/tmp/out")
    monkeypatch.setenv("SUBCAM_LOG_LEVEL", "debug")
    settings = ConversionSettings.from_env()

    assert settings.min_confidence == 3
    assert settings.min_quality == 2
    assert settings.output_dir == Path("/tmp/out")
    assert settings.log_level == "DEBUG"


def test_invalid_integer_names_the_variable(monkeypatch):
    monkeypatch.setenv("SUBCAM_MIN_CONFIDENCE", "high")
    with pytest.raises(ValueError, match="SUBCAM_MIN_CONFIDENCE"):
        ConversionSettings.from_env()


def test_negative_threshold_rejected():
    with pytest.raises(ValueError, match="non-negative"):
        ConversionSettings(min_quality=-1)


def test_unknown_log_level_rejected(monkeypatch):
    monkeypatch.setenv("SUBCAM_LOG_LEVEL", "CHATTY")
    with pytest.raises(ValueError, match="SUBCAM_LOG_LEVEL"):
        ConversionSettings.from_env()


def test_to_options():
    options = ConversionSettings(min_confidence=3).to_options()
    assert options == ConversionOptions(min_confidence=3, min_quality=None)


def test_get_settings_caches_until_reset(monkeypatch):
    monkeypatch.setenv("SUBCAM_MIN_CONFIDENCE", "2")
    first = get_settings()
    monkeypatch.setenv("SUBCAM_MIN_CONFIDENCE", "4")

    assert get_settings() is first
    assert first.conversion.min_confidence == 2

    reset_settings()
    assert get_settings().conversion.min_confidence == 4


def test_settings_can_be_built_directly():
    settings = Settings(conversion=ConversionSettings(min_confidence=1))
    assert settings.conversion.min_confidence == 1
