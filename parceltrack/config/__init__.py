# parceltrack/config/__init__.py
"""
Configuration module.
Exports the application settings.
"""

from parceltrack.config.loader import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
