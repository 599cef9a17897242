"""Pure domain layer: value objects, the edge table, input validation."""

from church_kernel.domain.church import (
    ANONYMOUS,
    RESERVED_STATUSES,
    Actor,
    ActorRole,
    AuditAction,
    Church,
    ChurchDraft,
    ChurchProfile,
    ChurchQuery,
    ChurchStatus,
    Confidence,
    HeritageAssessment,
    HeritageClassification,
    HeritageIndicator,
    TransitionApplied,
    TransitionOutcome,
    TransitionRecord,
    TransitionResult,
)
from church_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from church_kernel.domain.workflow import (
    CHURCH_EDGES,
    Edge,
    GuardKind,
    describe_edges,
    edges_from,
    find_edge,
)

__all__ = [
    "ANONYMOUS",
    "RESERVED_STATUSES",
    "Actor",
    "ActorRole",
    "AuditAction",
    "Church",
    "ChurchDraft",
    "ChurchProfile",
    "ChurchQuery",
    "ChurchStatus",
    "Confidence",
    "HeritageAssessment",
    "HeritageClassification",
    "HeritageIndicator",
    "TransitionApplied",
    "TransitionOutcome",
    "TransitionRecord",
    "TransitionResult",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CHURCH_EDGES",
    "Edge",
    "GuardKind",
    "describe_edges",
    "edges_from",
    "find_edge",
]
