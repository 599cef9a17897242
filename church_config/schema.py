"""
Configuration schema (``church_config.schema``).

Frozen dataclasses describing a loaded registry configuration.  The
loader produces them; nothing mutates them afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///church_registry.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class HeritageWeights:
    declared_classification: int = 100
    founded_before_cutoff: int = 50
    historic_architecture: int = 30
    heritage_keyword: int = 20


@dataclass(frozen=True)
class HeritageBands:
    high_above: int = 100
    medium_from: int = 50


@dataclass(frozen=True)
class HeritageConfig:
    weights: HeritageWeights = field(default_factory=HeritageWeights)
    bands: HeritageBands = field(default_factory=HeritageBands)
    cutoff_year: int = 1900
    historic_styles: tuple[str, ...] = ()
    heritage_keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class RegistryConfig:
    """The single runtime configuration artifact."""

    database: DatabaseConfig
    logging: LoggingConfig
    heritage: HeritageConfig
    source: str = ""
    checksum: str = ""
