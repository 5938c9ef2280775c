# logguard/core/config.py
"""
Configuration management for LogGuard
All settings in one place, can be overridden via environment variables
"""

from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator


class Settings(BaseSettings):
    """
    Global application settings
    Can be overridden with LOGGUARD_* environment variables
    """

    # ===== APP METADATA =====
    app_name: str = "LogGuard"
    version: str = "0.1.0"

    # ===== BACKEND CONNECTION =====
    api_base_url: str = "http://localhost:5000"
    session_cookie: Optional[str] = None  # Value of the authenticated session cookie
    session_cookie_name: str = "connect.sid"
    api_token: Optional[str] = None  # Sent as a bearer token when set
    request_timeout: float = 30.0  # Seconds per request
    verify_ssl: bool = True

    # ===== LOCAL STORAGE =====
    data_dir: Path = Field(default=Path.home() / ".logguard")
    export_dir: Optional[Path] = Field(default=None)

    # ===== AI DISPATCH DEFAULTS =====
    default_ai_provider: str = "openai"  # openai or gemini
    default_ai_tier: str = "standard"  # standard or premium
    ai_temperature: float = 0.1

    # ===== BACKEND LIMITS =====
    # Mirrors the backend's cap, only used to explain the capacity error
    max_concurrent_processing: int = 3
    max_upload_size_mb: int = 10
    allowed_upload_extensions: List[str] = Field(default=[".log", ".txt"])

    # ===== PROCESSING POLLER =====
    poll_interval: float = 5.0  # Seconds between log-file polls
    poll_timeout: float = 1800.0  # Backend times processing out after 30 minutes

    # ===== UI SETTINGS =====
    page_size: int = 20  # Rows per page in tables
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    model_config = SettingsConfigDict(
        env_prefix="LOGGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v):
        """Expand ~ and resolve path"""
        if isinstance(v, str):
            return Path(v).expanduser().resolve()
        return v

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def init_paths(self):
        """Initialize derived paths after all fields are set"""
        if self.export_dir is None:
            self.export_dir = self.data_dir / "exports"

        if isinstance(self.export_dir, str):
            self.export_dir = Path(self.export_dir)

        return self

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def is_allowed_upload(self, file_path: Path) -> bool:
        """Check if a file extension may be uploaded"""
        return file_path.suffix.lower() in self.allowed_upload_extensions

    def __repr__(self):
        return f"<Settings(app={self.app_name} v{self.version}, api={self.api_base_url})>"


# ===== GLOBAL SETTINGS INSTANCE =====
# This is imported throughout the app
settings = Settings()


# ===== HELPER FUNCTIONS =====

def get_settings() -> Settings:
    """
    Get the global settings instance
    Useful for dependency injection in tests
    """
    return settings


def reload_settings() -> Settings:
    """
    Reload settings from environment
    Useful if env vars change during runtime

    Updates the shared instance in place, so modules that did
    `from .config import settings` see the new values too.
    """
    fresh = Settings()
    for name in Settings.model_fields:
        setattr(settings, name, getattr(fresh, name))
    return settings
