"""Configuration for aifunctions."""

from .settings import DEFAULT_BASE_URL, Settings, load_settings

__all__ = ["Settings", "load_settings", "DEFAULT_BASE_URL"]
