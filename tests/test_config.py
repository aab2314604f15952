"""Tests for the configuration loading.
"""

import os
from unittest.mock import patch

import pytest

from voicenote_engine.core.config import Settings, get_settings
from voicenote_engine.core.dependencies import build_extraction_config, database_path
from voicenote_engine.core.logging_config import build_logging_config

def test_settings_loading_directly():
    """Test that Settings can be initialized directly with values.

    Bypasses environment variables and .env files.
    """
    test_values = {
        "environment": "testing",
        "debug": True,
        "database_url": "sqlite:///./data/test_db.sqlite",
        "llm_provider": "ollama",
        "ollama_base_url": "http://localhost:11435",
        "default_model": "test_model",
        "user_timezone": "Europe/Berlin",
    }
    settings = Settings(**test_values, _env_file=None)

    assert isinstance(settings, Settings)
    assert settings.environment == "testing"
    assert settings.debug is True
    assert settings.database_url == "sqlite:///./data/test_db.sqlite"
    assert settings.llm_provider == "ollama"
    assert settings.ollama_base_url == "http://localhost:11435"
    assert settings.default_model == "test_model"
    assert settings.user_timezone == "Europe/Berlin"

def test_settings_defaults():
    """Test that Settings use default values when environment variables are not set."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

    assert settings.environment == "development"
    assert settings.debug is False
    assert settings.database_url == "sqlite:///./data/voicenote_engine.db"
    assert settings.llm_provider == "openai"
    assert settings.OPENAI_API_KEY is None
    assert settings.extraction_temperature == 0.3
    assert settings.extraction_max_tokens == 1000
    assert settings.user_timezone == "America/New_York"
    assert settings.capture_language == "en-US"
    assert settings.GOOGLE_CALENDAR_API_SCOPES == [
        "https://www.googleapis.com/auth/calendar.events",
        "https://www.googleapis.com/auth/calendar.readonly",
    ]

def test_settings_from_environment():
    env = {
        "OPENAI_API_KEY": "sk-test",
        "llm_provider": "ollama",
        "extraction_max_tokens": "500",
        "capture_completion_delay_seconds": "0.25",
    }
    with patch.dict(os.environ, env, clear=True):
        settings = get_settings()

    assert settings.OPENAI_API_KEY == "sk-test"
    assert settings.llm_provider == "ollama"
    assert settings.extraction_max_tokens == 500
    assert settings.capture_completion_delay_seconds == 0.25

def test_database_path_resolves_sqlite_url(tmp_path):
    settings = Settings(database_url=f"sqlite:///{tmp_path}/notes.db", _env_file=None)
    assert database_path(settings) == (tmp_path / "notes.db").resolve()

def test_database_path_rejects_other_schemes():
    settings = Settings(database_url="postgresql://localhost/notes", _env_file=None)
    with pytest.raises(ValueError, match="Invalid database_url"):
        database_path(settings)

def test_build_extraction_config_uses_settings():
    settings = Settings(
        extraction_temperature=0.1,
        extraction_max_tokens=256,
        user_timezone="Asia/Tokyo",
        _env_file=None,
    )
    config = build_extraction_config(settings)
    assert config.temperature == 0.1
    assert config.max_tokens == 256
    assert config.default_timezone == "Asia/Tokyo"

def test_logging_config_quiets_noisy_libraries():
    config = build_logging_config("debug")
    assert config["handlers"]["console"]["level"] == "DEBUG"
    assert config["loggers"][""]["level"] == "DEBUG"
    for name in ("httpx", "openai", "googleapiclient", "uvicorn.access"):
        assert name in config["loggers"]
