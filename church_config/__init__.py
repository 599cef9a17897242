"""
church_config -- single public entrypoint for registry configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``church_kernel`` and ``church_engines``
    and below ``church_services``.  The kernel never imports from here;
    ``bridges`` translates the config into kernel and engine inputs.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - The returned ``RegistryConfig`` is frozen and carries the SHA-256
      checksum of the document it came from.

Failure modes:
    - ``ConfigError`` -- missing file, malformed YAML, unknown key or a
      value of the wrong type.  The error names the offending key.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from church_config.loader import ConfigError, load_yaml_file, parse_config
from church_config.schema import (
    DatabaseConfig,
    HeritageConfig,
    LoggingConfig,
    RegistryConfig,
)

_logger = logging.getLogger("church_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "CHURCH_REGISTRY_CONFIG"


def get_active_config(path: str | Path | None = None) -> RegistryConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: ``path`` argument, then the CHURCH_REGISTRY_CONFIG
    environment variable, then the packaged defaults.yaml.

    Raises:
        ConfigError: If the document cannot be read or fails validation.
    """
    resolved = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    config = parse_config(load_yaml_file(resolved), source=str(resolved))

    _logger.info(
        "CONFIG_TRACE",
        extra={
            "trace_type": "CONFIG_TRACE",
            "source": config.source,
            "checksum": config.checksum,
            "database_dialect": config.database.url.split(":", 1)[0],
        },
    )
    return config


__all__ = [
    "get_active_config",
    "ConfigError",
    "DatabaseConfig",
    "HeritageConfig",
    "LoggingConfig",
    "RegistryConfig",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
]
