"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_OCR_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _split_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3001")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    public_url: str = field(default_factory=lambda: os.getenv("PUBLIC_URL", "").rstrip("/"))

    # HTTP hardening
    allowed_origins: list[str] = field(
        default_factory=lambda: _split_origins(
            os.getenv("ALLOWED_ORIGINS", "http://localhost:5173")
        )
    )
    rate_limit_window_ms: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_WINDOW_MS", "60000"))
    )
    rate_limit_max: int = field(default_factory=lambda: int(os.getenv("RATE_LIMIT_MAX", "60")))
    max_upload_bytes: int = field(
        default_factory=lambda: int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
    )

    # Salesforce
    salesforce_client_id: str = field(
        default_factory=lambda: os.getenv("SALESFORCE_CLIENT_ID", "")
    )
    salesforce_client_secret: str = field(
        default_factory=lambda: os.getenv("SALESFORCE_CLIENT_SECRET", "")
    )
    salesforce_login_url: str = field(
        default_factory=lambda: os.getenv(
            "SALESFORCE_LOGIN_URL", "https://login.salesforce.com"
        ).rstrip("/")
    )
    salesforce_api_version: str = field(
        default_factory=lambda: os.getenv("SALESFORCE_API_VERSION", "59.0")
    )
    salesforce_instance_url: str = field(
        default_factory=lambda: os.getenv("SALESFORCE_INSTANCE_URL", "").rstrip("/")
    )
    salesforce_refresh_token: str = field(
        default_factory=lambda: os.getenv("SALESFORCE_REFRESH_TOKEN", "")
    )

    # OCR (vision model behind an OpenAI-compatible endpoint)
    ocr_api_key: str = field(
        default_factory=lambda: os.getenv("OCR_API_KEY") or os.getenv("GEMINI_API_KEY", "")
    )
    ocr_model: str = field(
        default_factory=lambda: os.getenv("OCR_MODEL")
        or os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    )
    ocr_base_url: str = field(
        default_factory=lambda: os.getenv("OCR_BASE_URL", DEFAULT_OCR_BASE_URL)
    )
    ocr_timeout_seconds: int = field(
        default_factory=lambda: int(os.getenv("OCR_TIMEOUT_SECONDS", "60"))
    )

    # Form controller
    api_url: str = field(
        default_factory=lambda: os.getenv("API_URL", "http://localhost:3001").rstrip("/")
    )
    draft_storage_dir: str = field(
        default_factory=lambda: os.getenv("DRAFT_STORAGE_DIR", "data/drafts")
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    @property
    def base_url(self) -> str:
        """External base URL of this backend."""
        if self.public_url:
            return self.public_url
        return f"https://{self.host}:{self.port}"

    @property
    def oauth_redirect_uri(self) -> str:
        """Callback registered with the Salesforce connected app."""
        return f"{self.base_url}/oauth/callback"

    @property
    def login_url(self) -> str:
        """URL a user opens to authenticate the backend against Salesforce."""
        return f"{self.base_url}/login"

    def to_dict(self) -> dict:
        """Convert config to dictionary (secrets excluded)."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "public_url": self.public_url,
            "allowed_origins": list(self.allowed_origins),
            "rate_limit_window_ms": self.rate_limit_window_ms,
            "rate_limit_max": self.rate_limit_max,
            "max_upload_bytes": self.max_upload_bytes,
            "salesforce_login_url": self.salesforce_login_url,
            "salesforce_api_version": self.salesforce_api_version,
            "ocr_model": self.ocr_model,
            "api_url": self.api_url,
            "draft_storage_dir": self.draft_storage_dir,
        }


_config_instance: Optional[Config] = None


def get_config() -> Config:
    """Get the configuration singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config.load()
    return _config_instance


def reset_config() -> None:
    """Reset the singleton instance (for testing)."""
    global _config_instance
    _config_instance = None
