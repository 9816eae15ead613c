"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, but settings
objects are handed to the services that need them explicitly.
Credentials may also arrive at runtime (e.g. from a settings panel),
in which case a new settings object is built and passed in - nothing
reads credentials from global state behind the caller's back.

Missing credentials are NOT an error at load time. An unconfigured
classifier or spreadsheet is a normal "disconnected" state.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (expense classifier)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key (classification is disabled without it)"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class GoogleSheetsSettings(BaseSettings):
    """
    Google Sheets record source configuration.

    Credentials can be given either as a service account JSON file
    (credentials_path) or as the client email + private key pair.
    """

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: Optional[str] = Field(
        default=None,
        description="Path to Google service account credentials JSON"
    )
    client_email: Optional[str] = Field(
        default=None,
        description="Service account client email"
    )
    private_key: Optional[str] = Field(
        default=None,
        description="Service account private key (PEM)"
    )
    spreadsheet_id: Optional[str] = Field(
        default=None,
        description="ID of the Google Sheets spreadsheet to sync with"
    )
    worksheet_name: str = Field(
        default="Sheet1",
        description="Name of the worksheet holding expenses"
    )

    @field_validator('private_key')
    @classmethod
    def unescape_private_key(cls, v: Optional[str]) -> Optional[str]:
        """Keys pasted into env files usually carry literal '\\n' sequences."""
        if v:
            return v.replace("\\n", "\n")
        return v

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before syncing."
            )
        return v

    @property
    def has_inline_credentials(self) -> bool:
        return bool(self.client_email and self.private_key)

    @property
    def is_configured(self) -> bool:
        """A spreadsheet ID plus one form of credentials."""
        return bool(self.spreadsheet_id) and (
            bool(self.credentials_path) or self.has_inline_credentials
        )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Classification behaviour
    categorize_on_create: bool = Field(
        default=True,
        description="Ask the classifier for a category when an expense is created without one"
    )
    classifier_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Give up on a single classifier call after this long"
    )
    audit_history_size: int = Field(
        default=500,
        ge=1,
        le=100000,
        description="How many audit events to keep in memory"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Check which services are configured.

    Checks get_settings() unless settings are given.

    Returns a dict of {setting_name: is_configured}, plus
    "<name>_error" entries for settings that failed to load.
    Useful for startup checks.
    """
    results = {}

    settings = settings or get_settings()

    try:
        results["gemini"] = settings.gemini.is_configured
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        results["google_sheets"] = settings.google_sheets.is_configured
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
