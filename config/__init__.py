"""Configuration management for opstream."""

from .loader import StreamConfigLoader, load_settings
from .schema import StreamSettings

__all__ = ["StreamConfigLoader", "StreamSettings", "load_settings"]
