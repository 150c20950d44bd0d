"""
config/ — speakerbot configuration

    from speakerbot.config import load_settings
"""

from speakerbot.config.settings import ConfigError, Settings, load_settings

__all__ = ["ConfigError", "Settings", "load_settings"]
