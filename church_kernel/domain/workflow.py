"""
Church publication workflow definition (``church_kernel.domain.workflow``).

Responsibility
--------------
The fixed edge table of the publication state machine.  Each edge is a
(from_status, to_status) pair with the roles allowed to take it and a
tagged guard kind.  Guards are data, not code: the workflow engine
dispatches on ``GuardKind``, so the table can be serialized and audited
and nothing executable is ever loaded from configuration.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Edges reference only members of ``ChurchStatus``.
* Reserved statuses (rejected, needs_revision) have no edges.
* Lookup is keyed by the exact (from, to) pair -- no edge may be
  skipped even when the actor could act on the destination directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from church_kernel.domain.church import (
    RESERVED_STATUSES,
    ActorRole,
    ChurchStatus,
)
from church_kernel.exceptions import WorkflowDefinitionError


class GuardKind(str, Enum):
    """Business condition attached to an edge."""

    NONE = "none"
    REQUIRES_HERITAGE = "requires_heritage"
    REQUIRES_NON_HERITAGE = "requires_non_heritage"
    REQUIRES_NOTE = "requires_note"


@dataclass(frozen=True)
class Edge:
    """A permitted status transition.

    Contract: frozen.  ``allowed_roles`` is never empty.
    """

    from_status: ChurchStatus
    to_status: ChurchStatus
    allowed_roles: frozenset[ActorRole]
    guard: GuardKind
    action: str
    description: str

    @property
    def key(self) -> tuple[ChurchStatus, ChurchStatus]:
        return (self.from_status, self.to_status)

    def as_dict(self) -> dict[str, Any]:
        return {
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "allowed_roles": sorted(r.value for r in self.allowed_roles),
            "guard": self.guard.value,
            "action": self.action,
            "description": self.description,
        }


CHURCH_EDGES: tuple[Edge, ...] = (
    Edge(
        from_status=ChurchStatus.PENDING,
        to_status=ChurchStatus.PENDING,
        allowed_roles=frozenset({ActorRole.PARISH_SECRETARY}),
        guard=GuardKind.NONE,
        action="resubmit",
        description="Re-submit church profile after a revision request",
    ),
    Edge(
        from_status=ChurchStatus.PENDING,
        to_status=ChurchStatus.APPROVED,
        allowed_roles=frozenset({ActorRole.CHANCERY_OFFICE}),
        guard=GuardKind.REQUIRES_NON_HERITAGE,
        action="approve",
        description="Approve and publish a non-heritage church",
    ),
    Edge(
        from_status=ChurchStatus.PENDING,
        to_status=ChurchStatus.HERITAGE_REVIEW,
        allowed_roles=frozenset({ActorRole.CHANCERY_OFFICE}),
        guard=GuardKind.REQUIRES_HERITAGE,
        action="forward_heritage",
        description="Forward to museum researcher for heritage validation",
    ),
    Edge(
        from_status=ChurchStatus.HERITAGE_REVIEW,
        to_status=ChurchStatus.APPROVED,
        allowed_roles=frozenset({ActorRole.MUSEUM_RESEARCHER}),
        guard=GuardKind.NONE,
        action="heritage_approve",
        description="Approve and publish after heritage validation",
    ),
    Edge(
        from_status=ChurchStatus.APPROVED,
        to_status=ChurchStatus.HERITAGE_REVIEW,
        allowed_roles=frozenset({
            ActorRole.CHANCERY_OFFICE,
            ActorRole.MUSEUM_RESEARCHER,
        }),
        guard=GuardKind.REQUIRES_NOTE,
        action="reevaluate",
        description="Send a published church back for heritage re-evaluation",
    ),
)

EDGE_TABLE: dict[tuple[ChurchStatus, ChurchStatus], Edge] = {
    e.key: e for e in CHURCH_EDGES
}


def validate_edges(edges: tuple[Edge, ...]) -> None:
    """Raise WorkflowDefinitionError if any edge touches a reserved status."""
    for e in edges:
        if e.from_status in RESERVED_STATUSES or e.to_status in RESERVED_STATUSES:
            raise WorkflowDefinitionError(
                e.from_status.value, e.to_status.value, "reserved statuses must not be wired",
            )


validate_edges(CHURCH_EDGES)


def find_edge(from_status: ChurchStatus, to_status: ChurchStatus) -> Edge | None:
    """Return the edge for the exact (from, to) pair, or None."""
    return EDGE_TABLE.get((from_status, to_status))


def edges_from(status: ChurchStatus) -> tuple[Edge, ...]:
    """All edges leaving ``status``, in table order."""
    return tuple(e for e in CHURCH_EDGES if e.from_status == status)


def describe_edges() -> list[dict[str, Any]]:
    """Serialize the edge table (for review dashboards and audits)."""
    return [e.as_dict() for e in CHURCH_EDGES]
