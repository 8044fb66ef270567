"""Configuration module for RhinoGuard.

Usage:
    from rhinoguard.config import get_settings

    settings = get_settings()  # Cached singleton
    print(settings.api_url)
"""

from rhinoguard.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
