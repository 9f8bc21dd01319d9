"""Configuration types with environment variable support.

All settings can be configured via environment variables with the RDNS_ prefix.
Example: RDNS_ROOT_DOMAIN=lb.example.com sets the root domain used for
generated subdomains.

Config files (YAML or TOML) may group keys in sections; ``etcd.endpoints``
in a file maps to the ``etcd_endpoints`` setting.
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "RDNS_"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")
_DURATION_UNITS = {"h": 3600, "m": 60, "s": 1}


def parse_duration(value: str | int | float) -> int:
    """Parse a Go-style duration ("240h", "1h30m", "90s") into whole seconds.

    Plain numbers are taken as seconds.

    Raises:
        ValueError: If the value is not a positive duration.
    """
    if isinstance(value, (int, float)):
        seconds = int(value)
    else:
        text = value.strip().lower()
        if text.isdigit():
            seconds = int(text)
        else:
            pos = 0
            total = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos == 0 or pos != len(text):
                raise ValueError(f"Invalid duration: {value!r}")
            seconds = int(total)
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


def _load_yaml(text: str) -> Any:
    return yaml.safe_load(text)


def _load_toml(text: str) -> Any:
    return tomllib.loads(text)


_LOADERS = {".yaml": _load_yaml, ".yml": _load_yaml, ".toml": _load_toml}


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Read an rdns settings file.

    The suffix picks the format: ``.yaml``/``.yml`` or ``.toml``. An empty
    file gives an empty mapping.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the suffix is unknown, the file is not UTF-8, it does
            not parse, or its top level is not a mapping.
    """
    path = Path(path)
    loader = _LOADERS.get(path.suffix.lower())
    if loader is None:
        raise ValueError(f"Unsupported config format: {path.suffix or path.name}")
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = loader(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise ValueError(f"{path} is not valid UTF-8: {e}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping of settings")
    return data


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Join nested sections into setting names: ``{"etcd": {"prefix": ...}}`` -> ``etcd_prefix``."""
    flat: dict[str, Any] = {}
    for name, value in config.items():
        key = f"{prefix}_{name}" if prefix else name
        if isinstance(value, dict):
            flat.update(flatten_config(value, key))
        else:
            flat[key] = value
    return flat


class RDNSConfig(BaseSettings):
    """Settings for the registration backend.

    The root domain, storage prefix and TTL are read once when the backend is
    built and stay fixed for its lifetime.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    root_domain: str = Field(
        default="lb.rancher.cloud",
        description="Suffix under which random subdomains are generated.",
    )
    ttl: int = Field(
        default=parse_duration("240h"),
        description="Registration and token TTL in seconds. Accepts durations like '240h'.",
    )
    etcd_endpoints: str = Field(
        default="http://127.0.0.1:2379",
        description="Comma-separated etcd client URLs.",
    )
    etcd_prefix: str = Field(
        default="/rdns",
        description="Key prefix for domain records in etcd.",
    )
    etcd_timeout: float = Field(
        default=1.0,
        gt=0,
        description="Per-request timeout in seconds so requests fail fast on a dead endpoint.",
    )
    max_slug_attempts: int = Field(
        default=100,
        ge=1,
        description="How many random slugs create() tries before giving up.",
    )
    slug_length: int = Field(default=6, ge=1, le=63)
    token_length: int = Field(default=32, ge=8)
    debug: bool = Field(default=False, description="Enable debug logging.")

    @field_validator("ttl", mode="before")
    @classmethod
    def _parse_ttl(cls, value: Any) -> int:
        return parse_duration(value)

    @field_validator("etcd_endpoints", mode="before")
    @classmethod
    def _join_endpoints(cls, value: Any) -> str:
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return value

    @field_validator("root_domain")
    @classmethod
    def _strip_root_domain(cls, value: str) -> str:
        value = value.strip().strip(".").lower()
        if not value:
            raise ValueError("root_domain must not be empty")
        return value

    @field_validator("etcd_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    def get_endpoints(self) -> list[str]:
        """Parse etcd_endpoints string into a list."""
        return [e.strip() for e in self.etcd_endpoints.split(",") if e.strip()]

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> RDNSConfig:
        """Build settings from a config file.

        Environment variables take precedence over file values, and explicit
        ``overrides`` take precedence over both.
        """
        values = flatten_config(load_config_from_file(path))
        values = {
            key: value
            for key, value in values.items()
            if f"{ENV_PREFIX}{key.upper()}" not in os.environ
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_display_dict(self) -> dict[str, Any]:
        """Export current configuration as a nested dictionary for display."""
        return {
            "root_domain": self.root_domain,
            "ttl": self.ttl,
            "etcd": {
                "endpoints": self.get_endpoints(),
                "prefix": self.etcd_prefix,
                "timeout": self.etcd_timeout,
            },
            "max_slug_attempts": self.max_slug_attempts,
            "slug_length": self.slug_length,
            "token_length": self.token_length,
            "debug": self.debug,
        }
