"""Configuration package."""

from gist_ledger.config.settings import (
    AppSettings,
    GitHubSettings,
    LedgerSettings,
    SessionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GitHubSettings",
    "LedgerSettings",
    "SessionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
