"""
Church publication domain types (``church_kernel.domain.church``).

Responsibility
--------------
Pure value objects for the publication pipeline: the status, role and
classification vocabularies, the Church / Actor / TransitionRecord
snapshots handed between layers, the classifier result, and the result
and event types the workflow engine produces.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* ``Church.diocese`` is set once at creation; no DTO offers a way to
  change it.
* ``Actor`` with role ``parish_secretary`` always carries a parish.
* ``TransitionRecord`` is frozen -- the ledger row it mirrors is
  append-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


# =========================================================================
# Vocabularies
# =========================================================================


class ChurchStatus(str, Enum):
    """Publication lifecycle states of a Church record."""

    PENDING = "pending"
    HERITAGE_REVIEW = "heritage_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"


# Part of the vocabulary, but no edge enters or leaves them.
RESERVED_STATUSES: frozenset[ChurchStatus] = frozenset({
    ChurchStatus.REJECTED,
    ChurchStatus.NEEDS_REVISION,
})


class HeritageClassification(str, Enum):
    """Official heritage declaration tag."""

    ICP = "ICP"  # Important Cultural Property
    NCT = "NCT"  # National Cultural Treasure
    NONE = "none"


class ActorRole(str, Enum):
    """Roles an actor can hold."""

    CHANCERY_OFFICE = "chancery_office"
    MUSEUM_RESEARCHER = "museum_researcher"
    PARISH_SECRETARY = "parish_secretary"
    PUBLIC = "public"


class Confidence(str, Enum):
    """Heritage classifier confidence band."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AuditAction(str, Enum):
    """Kinds of mutating calls recorded in the audit ledger."""

    CHURCH_CREATED = "church_created"
    PROFILE_UPDATED = "profile_updated"
    STATUS_TRANSITION = "status_transition"


class TransitionOutcome(str, Enum):
    """Outcome of one attempt, as recorded in the ledger."""

    APPLIED = "applied"
    REJECTED = "rejected"


# =========================================================================
# Church and Actor snapshots
# =========================================================================


@dataclass(frozen=True)
class ChurchProfile:
    """The inputs the heritage classifier scores.

    All fields optional; a missing field contributes no signal.
    """

    classification: HeritageClassification = HeritageClassification.NONE
    founding_year: int | None = None
    architectural_style: str | None = None
    description: str | None = None
    keywords: tuple[str, ...] = ()
    heritage_notes: str | None = None


@dataclass(frozen=True)
class Church:
    """Immutable snapshot of a Church row at a given version."""

    id: str
    name: str
    diocese: str
    status: ChurchStatus
    version: int
    classification: HeritageClassification = HeritageClassification.NONE
    founding_year: int | None = None
    architectural_style: str | None = None
    description: str | None = None
    keywords: tuple[str, ...] = ()
    heritage_notes: str | None = None
    heritage_score: int = 0
    heritage_confidence: Confidence = Confidence.LOW
    is_heritage: bool = False
    created_by_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def parish(self) -> str:
        """A Church's id is its parish identifier."""
        return self.id

    def profile(self) -> ChurchProfile:
        return ChurchProfile(
            classification=self.classification,
            founding_year=self.founding_year,
            architectural_style=self.architectural_style,
            description=self.description,
            keywords=self.keywords,
            heritage_notes=self.heritage_notes,
        )


@dataclass(frozen=True)
class ChurchDraft:
    """Caller input for creating a Church (status is always pending)."""

    id: str
    name: str
    diocese: str
    classification: HeritageClassification = HeritageClassification.NONE
    founding_year: int | None = None
    architectural_style: str | None = None
    description: str | None = None
    keywords: tuple[str, ...] = ()
    heritage_notes: str | None = None

    def profile(self) -> ChurchProfile:
        return ChurchProfile(
            classification=self.classification,
            founding_year=self.founding_year,
            architectural_style=self.architectural_style,
            description=self.description,
            keywords=self.keywords,
            heritage_notes=self.heritage_notes,
        )


@dataclass(frozen=True)
class Actor:
    """A user profile as seen by the authorization gate.

    Contract: ``parish`` is required for parish_secretary and ignored
    for every other role.  ``diocese`` is None only for public actors.
    """

    uid: str
    role: ActorRole
    diocese: str | None = None
    parish: str | None = None
    display_name: str = ""
    email: str = ""
    is_active: bool = True
    is_deleted: bool = False
    created_by_id: str | None = None
    created_at: datetime | None = None

    @property
    def is_enabled(self) -> bool:
        return self.is_active and not self.is_deleted


ANONYMOUS = Actor(uid="anonymous", role=ActorRole.PUBLIC)


# =========================================================================
# Audit ledger record
# =========================================================================


@dataclass(frozen=True)
class TransitionRecord:
    """One ledger row: an accepted or rejected attempt on a Church.

    ``from_status`` is None for a rejected attempt on a Church that does
    not exist.  ``version_after`` is None for rejected attempts.
    """

    id: UUID
    church_id: str
    seq: int
    action: AuditAction
    from_status: ChurchStatus | None
    to_status: ChurchStatus | None
    actor_id: str
    actor_role: ActorRole
    heritage_score_at_transition: int | None
    notes: str
    recorded_at: datetime
    outcome: TransitionOutcome
    error_code: str | None = None
    version_before: int | None = None
    version_after: int | None = None
    payload_hash: str = ""
    prev_hash: str | None = None
    hash: str = ""

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED


# =========================================================================
# Heritage classifier result
# =========================================================================


@dataclass(frozen=True)
class HeritageIndicator:
    """One scoring signal and whether it fired."""

    name: str
    present: bool
    weight: int
    detail: str = ""


@dataclass(frozen=True)
class HeritageAssessment:
    """Classifier output; stored with every ledger record via its score."""

    score: int
    confidence: Confidence
    is_heritage: bool
    indicators: tuple[HeritageIndicator, ...] = ()
    reasoning: str = ""

    def as_dict(self) -> dict:
        return {
            "score": self.score,
            "confidence": self.confidence.value,
            "is_heritage": self.is_heritage,
        }


# =========================================================================
# Workflow results and events
# =========================================================================


@dataclass(frozen=True)
class TransitionResult:
    """Result of ``request_transition``.

    ``record`` is the ledger row written for this attempt, or, for an
    idempotent replay, the row written by the original attempt.
    """

    outcome: TransitionOutcome
    record: TransitionRecord | None = None
    error_code: str | None = None
    reason: str = ""
    classification: HeritageAssessment | None = None
    idempotent_replay: bool = False

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED


@dataclass(frozen=True)
class TransitionApplied:
    """Published to the notification collaborator after every applied transition."""

    church_id: str
    from_status: ChurchStatus
    to_status: ChurchStatus
    actor_id: str
    timestamp: datetime
    record_id: UUID | None = None
    diocese: str | None = None
    notes: str = ""


@dataclass(frozen=True)
class ChurchQuery:
    """Filters for listing churches."""

    diocese: str | None = None
    status: ChurchStatus | None = None
    heritage_only: bool = False
    limit: int = field(default=100)
