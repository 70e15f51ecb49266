"""Configuration loading for Steward.

Usage:
    from steward.config import get_settings

    settings = get_settings()
    ttl = settings.storage.session.ttl_seconds
"""

from functools import lru_cache

from steward.config.loader import load_config
from steward.config.settings import Settings, set_toml_config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance.

    Cached for the lifetime of the process; call `reload_settings()` after
    changing configuration files or environment variables.
    """
    set_toml_config(load_config())
    return Settings()


def reload_settings() -> Settings:
    """Clear the settings cache and reload configuration."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["get_settings", "reload_settings", "Settings"]
