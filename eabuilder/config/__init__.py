"""
EA Builder Configuration Package
"""

from .settings import ApplicationSettings, get_settings, settings

__all__ = ["ApplicationSettings", "get_settings", "settings"]
