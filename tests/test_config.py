"""Tests for config.py - configuration and environment handling."""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from commclimb.config import (
    DEFAULT_DB_PATH,
    DEFAULT_MODEL,
    REQUIRED_PACKAGES,
    check_dependencies,
    get_db_path,
    get_gemini_client,
    get_media_dir,
    get_model,
    get_transcribe_url,
    load_api_key,
)


class TestCheckDependencies:
    """Tests for dependency checking."""

    def test_check_dependencies_when_installed(self):
        """Returns True when all dependencies are available."""
        assert check_dependencies() is True

    def test_check_dependencies_when_missing(self):
        """Returns False when an import fails."""
        with patch.dict("sys.modules", {"requests": None}):
            assert check_dependencies() is False

    def test_required_packages_list(self):
        assert "google-genai" in REQUIRED_PACKAGES
        assert "python-dotenv" in REQUIRED_PACKAGES
        assert "flask" in REQUIRED_PACKAGES


class TestLoadApiKey:
    """Tests for API key loading."""

    def test_load_api_key_from_env(self):
        with patch("dotenv.load_dotenv"):
            with patch.dict(os.environ, {"GEMINI_API_KEY": "test-api-key-12345"}, clear=False):
                assert load_api_key("gemini") == "test-api-key-12345"

    def test_load_api_key_missing_exits(self):
        """Missing API key should call sys.exit(1)."""
        original_key = os.environ.pop("GEMINI_API_KEY", None)
        try:
            with patch("dotenv.load_dotenv"):
                with pytest.raises(SystemExit) as exc_info:
                    load_api_key("gemini")
                assert exc_info.value.code == 1
        finally:
            if original_key:
                os.environ["GEMINI_API_KEY"] = original_key

    def test_load_api_key_unknown_client_exits(self):
        with patch("dotenv.load_dotenv"):
            with pytest.raises(SystemExit) as exc_info:
                load_api_key("elevenlabs")
            assert exc_info.value.code == 1

    def test_load_api_key_empty_string_exits(self):
        with patch("dotenv.load_dotenv"):
            with patch.dict(os.environ, {"GEMINI_API_KEY": ""}, clear=False):
                with pytest.raises(SystemExit) as exc_info:
                    load_api_key("gemini")
                assert exc_info.value.code == 1

    def test_load_dotenv_called(self):
        with patch("dotenv.load_dotenv") as mock_load:
            with patch.dict(os.environ, {"GEMINI_API_KEY": "test-key"}, clear=False):
                load_api_key("gemini")
                mock_load.assert_called_once()


class TestGetGeminiClient:
    """Tests for Gemini client creation."""

    def test_get_client_with_valid_key(self):
        with patch("dotenv.load_dotenv"):
            with patch.dict(os.environ, {"GEMINI_API_KEY": "test-api-key"}, clear=False):
                with patch("google.genai.Client") as mock_client_class:
                    mock_client = MagicMock()
                    mock_client_class.return_value = mock_client

                    result = get_gemini_client()

                    mock_client_class.assert_called_once_with(api_key="test-api-key")
                    assert result == mock_client

    def test_get_client_missing_key_exits(self):
        original_key = os.environ.pop("GEMINI_API_KEY", None)
        try:
            with patch("dotenv.load_dotenv"):
                with pytest.raises(SystemExit):
                    get_gemini_client()
        finally:
            if original_key:
                os.environ["GEMINI_API_KEY"] = original_key


class TestPaths:
    """Tests for environment-driven settings."""

    def test_db_path_override_wins(self):
        with patch.dict(os.environ, {"COMMCLIMB_DB": "/tmp/env.db"}):
            assert get_db_path("/tmp/cli.db") == Path("/tmp/cli.db")

    def test_db_path_from_env(self):
        with patch.dict(os.environ, {"COMMCLIMB_DB": "/tmp/env.db"}):
            assert get_db_path() == Path("/tmp/env.db")

    def test_db_path_default(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_db_path() == DEFAULT_DB_PATH

    def test_media_dir_from_env(self):
        with patch.dict(os.environ, {"COMMCLIMB_MEDIA_DIR": "/tmp/clips"}):
            assert get_media_dir() == Path("/tmp/clips")

    def test_model_default_and_override(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_model() == DEFAULT_MODEL
        with patch.dict(os.environ, {"COMMCLIMB_MODEL": "gemini-pro"}):
            assert get_model() == "gemini-pro"

    def test_transcribe_url_blank_is_none(self):
        with patch.dict(os.environ, {"COMMCLIMB_TRANSCRIBE_URL": ""}):
            assert get_transcribe_url() is None
