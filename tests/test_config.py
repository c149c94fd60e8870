"""
Tests for Configuration

Tests for config.py, gemini.py and display names in models.py
"""

import logging

import pytest

from config import LOG_FORMAT, Settings, load_settings, setup_logging
from errors import ConfigurationError
from gemini import get_client
from orchestrator import build_orchestrator
from services import GeminiImageSynthesizer, GeminiTextContinuator
from models import COMIC_FORMAT_NAMES, DRAWING_STYLE_NAMES, ComicFormat, DrawingStyle


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "TEXT_MODEL", "IMAGE_MODEL", "REFERENCE_MODEL", "DATA_DIR", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    get_client.cache_clear()
    yield monkeypatch
    get_client.cache_clear()


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self, clean_env):
        """Test defaults apply when nothing is set."""
        settings = load_settings()

        assert settings.api_key is None
        assert settings.text_model == "gemini-2.5-flash"
        assert settings.image_model == "gemini-2.5-flash-image"
        assert settings.data_dir.name == "nanobanana_data"

    def test_overrides(self, clean_env, tmp_path):
        """Test environment variables override defaults."""
        clean_env.setenv("GOOGLE_API_KEY", "k-123")
        clean_env.setenv("IMAGE_MODEL", "custom-image")
        clean_env.setenv("DATA_DIR", str(tmp_path))

        settings = load_settings()

        assert settings.api_key == "k-123"
        assert settings.image_model == "custom-image"
        assert settings.data_dir == tmp_path

    def test_missing_key_fails_on_first_use(self, clean_env):
        """Test the client is only refused when it is actually requested."""
        with pytest.raises(ConfigurationError):
            get_client()


class TestLogging:
    """Console logging setup."""

    def test_setup_logging(self):
        """Test one stdout handler with the shared format is installed."""
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging("debug")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert root.handlers[0].formatter._fmt == LOG_FORMAT
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_build_orchestrator_configures_logging(self):
        """Test the Gemini orchestrator entry point installs logging from settings."""
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            orchestrator = build_orchestrator(Settings(log_level="WARNING"))

            assert root.level == logging.WARNING
            assert isinstance(orchestrator.synthesizer, GeminiImageSynthesizer)
            assert isinstance(orchestrator.continuity.continuator, GeminiTextContinuator)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestDisplayNames:
    """Every enum member has a display name."""

    def test_styles(self):
        assert set(DRAWING_STYLE_NAMES) == set(DrawingStyle)

    def test_formats(self):
        assert set(COMIC_FORMAT_NAMES) == set(ComicFormat)
