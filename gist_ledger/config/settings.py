"""
Configuration Management for Gist Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The GitHub token is NOT part of the settings: it is a per-session
credential supplied by the user and persisted by the session store.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GitHubSettings(BaseSettings):
    """GitHub Gist API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_",
        extra="ignore"
    )

    api_base_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API"
    )
    api_version: str = Field(
        default="2022-11-28",
        description="Value sent in the X-GitHub-Api-Version header"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="HTTP timeout for a single request"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for idempotent GET requests"
    )
    gists_per_page: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Page size used when listing the user's gists"
    )

    @field_validator('api_base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class LedgerSettings(BaseSettings):
    """Ledger document configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    document_description: str = Field(
        default="GistLedger-Data",
        min_length=1,
        description="Exact gist description identifying the ledger document"
    )
    data_filename: str = Field(
        default="ledger_data.json",
        min_length=1,
        description="File inside the gist that holds the serialized ledger"
    )
    page_size: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Items per page in the history view"
    )


class SessionSettings(BaseSettings):
    """Local session persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        extra="ignore"
    )

    session_file: Path = Field(
        default=Path.home() / ".gist_ledger" / "session.json",
        description="Where the token and gist id are kept between runs"
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
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Audit
    audit_history_size: int = Field(
        default=500,
        ge=0,
        le=10000,
        description="How many audit events are kept in memory"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    @property
    def github(self) -> GitHubSettings:
        return GitHubSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def session(self) -> SessionSettings:
        return SessionSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    "<name>_error" entries describing any failure.
    """
    results = {}

    settings = get_settings()

    for name in ("github", "ledger", "session", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
