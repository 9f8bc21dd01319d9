"""Core."""

from .config import (
    ENV_PREFIX,
    RDNSConfig,
    flatten_config,
    load_config_from_file,
    parse_duration,
)

__all__ = [
    "ENV_PREFIX",
    "RDNSConfig",
    "flatten_config",
    "load_config_from_file",
    "parse_duration",
]
