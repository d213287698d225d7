"""Environment-driven application settings."""

from newshub.settings.app import AppSettings, get_settings


__all__ = ["AppSettings", "get_settings"]
