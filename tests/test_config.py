"""
Tests for Configuration Loading
"""

from __future__ import annotations

import pytest

from utils.config import DEFAULT_OCR_BASE_URL, Config, get_config, reset_config


ENV_VARS = (
    "HOST", "PORT", "DEBUG", "PUBLIC_URL", "ALLOWED_ORIGINS", "RATE_LIMIT_WINDOW_MS",
    "RATE_LIMIT_MAX", "MAX_UPLOAD_BYTES", "SALESFORCE_CLIENT_SECRET", "OCR_API_KEY",
    "GEMINI_API_KEY", "OCR_MODEL", "GEMINI_MODEL", "OCR_BASE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestConfig:
    """Tests for Config."""

    def test_defaults(self):
        config = Config.load()

        assert config.host == "127.0.0.1"
        assert config.port == 3001
        assert config.debug is False
        assert config.allowed_origins == ["http://localhost:5173"]
        assert config.rate_limit_window_ms == 60000
        assert config.rate_limit_max == 60
        assert config.max_upload_bytes == 5 * 1024 * 1024
        assert config.salesforce_api_version == "59.0"
        assert config.ocr_model == "gemini-1.5-flash"
        assert config.ocr_base_url == DEFAULT_OCR_BASE_URL

    def test_origins_are_split(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")
        assert Config.load().allowed_origins == ["https://a.example", "https://b.example"]

    def test_gemini_fallbacks(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "gk")
        monkeypatch.setenv("GEMINI_MODEL", "gemini-2.0-flash")

        config = Config.load()

        assert config.ocr_api_key == "gk"
        assert config.ocr_model == "gemini-2.0-flash"

    def test_ocr_key_takes_precedence(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "gk")
        monkeypatch.setenv("OCR_API_KEY", "ok")
        assert Config.load().ocr_api_key == "ok"

    def test_urls_from_public_url(self, monkeypatch):
        monkeypatch.setenv("PUBLIC_URL", "https://onboarding.example/")

        config = Config.load()

        assert config.login_url == "https://onboarding.example/login"
        assert config.oauth_redirect_uri == "https://onboarding.example/oauth/callback"

    def test_urls_from_host_and_port(self):
        assert Config.load().login_url == "https://127.0.0.1:3001/login"

    def test_to_dict_excludes_secrets(self, monkeypatch):
        monkeypatch.setenv("SALESFORCE_CLIENT_SECRET", "s3cret")
        monkeypatch.setenv("OCR_API_KEY", "k3y")

        values = Config.load().to_dict()

        assert "s3cret" not in values.values()
        assert "k3y" not in values.values()

    def test_singleton(self):
        assert get_config() is get_config()
        reset_config()
        assert get_config() is not None
