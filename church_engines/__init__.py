"""
Module: church_engines
Responsibility:
    Package entrypoint re-exporting the pure engines: the heritage
    classifier and the authorization gate.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import church_kernel/domain (and sibling engine modules).
    MUST NOT import church_services.

Invariants enforced:
    - Purity: engines never read the clock or touch storage.
    - Determinism: identical inputs always produce identical outputs.
"""

from church_engines.authorization import (
    AccessDecision,
    AuthorizationGate,
    GateAction,
    HERITAGE_VALIDATION_FIELDS,
    ROLE_ACTIONS,
)
from church_engines.heritage import (
    DEFAULT_SETTINGS,
    HeritageClassifierLike,
    HeritageSettings,
    WeightedHeritageClassifier,
    band_for,
    classify,
)

__all__ = [
    "AccessDecision",
    "AuthorizationGate",
    "GateAction",
    "HERITAGE_VALIDATION_FIELDS",
    "ROLE_ACTIONS",
    "DEFAULT_SETTINGS",
    "HeritageClassifierLike",
    "HeritageSettings",
    "WeightedHeritageClassifier",
    "band_for",
    "classify",
]
