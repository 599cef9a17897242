"""
Configuration Loader (``church_config.loader``).

Responsibility
--------------
Loads the registry YAML document and parses it into the frozen
``church_config.schema`` dataclasses.  Runtime callers go through
``church_config.get_active_config()``; this module is its machinery.

Invariants enforced
-------------------
* Every parse error raises ``ConfigError`` naming the offending key; no
  silent coercion of wrong types.
* Unknown top-level sections and unknown keys inside a section are
  errors, so a typo never silently falls back to a default.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical
  JSON form of the document.

Failure modes
-------------
* Missing file -> ``ConfigError``.
* Malformed YAML -> ``ConfigError`` wrapping ``yaml.YAMLError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from church_config.schema import (
    DatabaseConfig,
    HeritageBands,
    HeritageConfig,
    HeritageWeights,
    LoggingConfig,
    RegistryConfig,
)

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class ConfigError(ValueError):
    """Invalid or unreadable configuration document."""

    code: str = "CONFIG_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration at '{key}': {reason}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file is an empty mapping."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(str(path), "file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigError(str(path), f"malformed YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(name, "must be a mapping")
    return value


def _check_keys(section: dict[str, Any], prefix: str, allowed: set[str]) -> None:
    for key in section:
        if key not in allowed:
            raise ConfigError(f"{prefix}.{key}", "unknown key")


def _int(section: dict[str, Any], key: str, prefix: str, default: int, minimum: int = 0) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{prefix}.{key}", "must be an integer")
    if value < minimum:
        raise ConfigError(f"{prefix}.{key}", f"must be >= {minimum}")
    return value


def _str_list(section: dict[str, Any], key: str, prefix: str) -> tuple[str, ...]:
    value = section.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
        raise ConfigError(f"{prefix}.{key}", "must be a list of non-empty strings")
    return tuple(v.strip().lower() for v in value)


def parse_database(section: dict[str, Any]) -> DatabaseConfig:
    _check_keys(section, "database", {"url", "echo", "pool_size", "max_overflow", "pool_timeout"})
    defaults = DatabaseConfig()
    url = section.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ConfigError("database.url", "must be a non-empty string")
    echo = section.get("echo", defaults.echo)
    if not isinstance(echo, bool):
        raise ConfigError("database.echo", "must be a boolean")
    return DatabaseConfig(
        url=url,
        echo=echo,
        pool_size=_int(section, "pool_size", "database", defaults.pool_size, 1),
        max_overflow=_int(section, "max_overflow", "database", defaults.max_overflow),
        pool_timeout=_int(section, "pool_timeout", "database", defaults.pool_timeout, 1),
    )


def parse_logging(section: dict[str, Any]) -> LoggingConfig:
    _check_keys(section, "logging", {"level"})
    level = str(section.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError("logging.level", f"unknown level {level}")
    return LoggingConfig(level=level)


def parse_heritage(section: dict[str, Any]) -> HeritageConfig:
    _check_keys(
        section,
        "heritage",
        {"weights", "bands", "cutoff_year", "historic_styles", "heritage_keywords"},
    )
    weights = _section(section, "weights")
    _check_keys(weights, "heritage.weights", set(HeritageWeights.__dataclass_fields__))
    w_default = HeritageWeights()
    parsed_weights = HeritageWeights(**{
        name: _int(weights, name, "heritage.weights", getattr(w_default, name))
        for name in HeritageWeights.__dataclass_fields__
    })

    bands = _section(section, "bands")
    _check_keys(bands, "heritage.bands", {"high_above", "medium_from"})
    b_default = HeritageBands()
    parsed_bands = HeritageBands(
        high_above=_int(bands, "high_above", "heritage.bands", b_default.high_above),
        medium_from=_int(bands, "medium_from", "heritage.bands", b_default.medium_from),
    )
    if parsed_bands.medium_from > parsed_bands.high_above:
        raise ConfigError("heritage.bands", "medium_from must not exceed high_above")

    return HeritageConfig(
        weights=parsed_weights,
        bands=parsed_bands,
        cutoff_year=_int(section, "cutoff_year", "heritage", 1900, 1),
        historic_styles=_str_list(section, "historic_styles", "heritage"),
        heritage_keywords=_str_list(section, "heritage_keywords", "heritage"),
    )


def parse_config(data: dict[str, Any], source: str = "") -> RegistryConfig:
    """Validate a raw document and build the frozen RegistryConfig."""
    for key in data:
        if key not in ("database", "logging", "heritage"):
            raise ConfigError(key, "unknown section")
    return RegistryConfig(
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
        heritage=parse_heritage(_section(data, "heritage")),
        source=source,
        checksum=compute_checksum(data),
    )
