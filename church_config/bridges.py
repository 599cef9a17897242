"""
Config-to-engine bridges (``church_config.bridges``).

Translate the frozen RegistryConfig into the inputs the engines and the
database layer take, so neither of them imports this package.
"""

from __future__ import annotations

from church_config.schema import HeritageConfig, RegistryConfig
from church_engines.heritage import (
    DEFAULT_HERITAGE_KEYWORDS,
    DEFAULT_HISTORIC_STYLES,
    HeritageSettings,
    WeightedHeritageClassifier,
)


def heritage_settings(config: HeritageConfig) -> HeritageSettings:
    """Empty style or keyword lists fall back to the built-in lists."""
    return HeritageSettings(
        declared_weight=config.weights.declared_classification,
        founding_weight=config.weights.founded_before_cutoff,
        architecture_weight=config.weights.historic_architecture,
        keyword_weight=config.weights.heritage_keyword,
        cutoff_year=config.cutoff_year,
        high_threshold=config.bands.high_above,
        medium_threshold=config.bands.medium_from,
        historic_styles=config.historic_styles or DEFAULT_HISTORIC_STYLES,
        heritage_keywords=config.heritage_keywords or DEFAULT_HERITAGE_KEYWORDS,
    )


def build_classifier(config: RegistryConfig) -> WeightedHeritageClassifier:
    return WeightedHeritageClassifier(heritage_settings(config.heritage))


def engine_kwargs(config: RegistryConfig) -> dict:
    """Keyword arguments for church_kernel.db.init_engine_from_url."""
    db = config.database
    return {
        "database_url": db.url,
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_timeout": db.pool_timeout,
    }
