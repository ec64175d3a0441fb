"""Configuration loading, schema, and defaults."""

from httpsify.config.loader import ConfigError, load_config
from httpsify.config.schema import HttpsifyConfig

__all__ = [
    "ConfigError",
    "HttpsifyConfig",
    "load_config",
]
