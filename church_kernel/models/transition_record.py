"""
Module: church_kernel.models.transition_record
Responsibility: ORM persistence for the append-only, hash-chained audit
    ledger of every mutating attempt on a Church.
Architecture position: Kernel > Models.

Invariants enforced:
    - Records are append-only; no UPDATE or DELETE (db/immutability.py).
    - ``seq`` is unique per church and allocated from a locked counter row,
      never from max(seq)+1.
    - hash = H(church_id | action | payload_hash | prev_hash); the genesis
      record of each church has prev_hash NULL.  Validated by
      AuditLogService.validate_chain().

There is deliberately no foreign key to ``churches``: attempts on a
Church that does not exist are ledgered too.

Failure modes:
    - IntegrityError on duplicate (church_id, seq): the append is wrapped
      as AuditWriteError and the whole operation rolls back.
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from church_kernel.db.base import Base, UTCDateTime, UUIDString
from church_kernel.domain.church import (
    ActorRole,
    AuditAction,
    ChurchStatus,
    TransitionOutcome,
    TransitionRecord,
)


class TransitionRecordModel(Base):
    """
    One ledger row: an accepted or rejected attempt.

    Contract:
        Rows are sacred from the moment they are flushed.  Correctness of
        ``hash`` at INSERT time is AuditLogService's responsibility.
    """

    __tablename__ = "transition_records"

    __table_args__ = (
        UniqueConstraint("church_id", "seq", name="uq_transition_church_seq"),
        CheckConstraint(
            "outcome IN ('applied', 'rejected')",
            name="ck_transition_valid_outcome",
        ),
        CheckConstraint(
            "outcome = 'rejected' OR error_code IS NULL",
            name="ck_transition_applied_has_no_error",
        ),
        Index("idx_transition_church", "church_id", "seq"),
        Index("idx_transition_actor", "actor_id"),
        Index("idx_transition_recorded", "recorded_at"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)

    church_id: Mapped[str] = mapped_column(String(64), nullable=False)

    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[str] = mapped_column(String(30), nullable=False)

    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)

    to_status: Mapped[str | None] = mapped_column(String(30), nullable=True)

    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)

    actor_role: Mapped[str] = mapped_column(String(30), nullable=False)

    heritage_score_at_transition: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
    )

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    outcome: Mapped[str] = mapped_column(String(10), nullable=False)

    error_code: Mapped[str | None] = mapped_column(String(40), nullable=True)

    version_before: Mapped[int | None] = mapped_column(Integer, nullable=True)

    version_after: Mapped[int | None] = mapped_column(Integer, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TransitionRecord {self.church_id}#{self.seq} {self.action} "
            f"{self.from_status}->{self.to_status} {self.outcome}>"
        )

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_dto(self) -> TransitionRecord:
        """Convert ORM model to frozen domain DTO."""
        return TransitionRecord(
            id=self.id,
            church_id=self.church_id,
            seq=self.seq,
            action=AuditAction(self.action),
            from_status=ChurchStatus(self.from_status) if self.from_status else None,
            to_status=ChurchStatus(self.to_status) if self.to_status else None,
            actor_id=self.actor_id,
            actor_role=ActorRole(self.actor_role),
            heritage_score_at_transition=self.heritage_score_at_transition,
            notes=self.notes,
            recorded_at=self.recorded_at,
            outcome=TransitionOutcome(self.outcome),
            error_code=self.error_code,
            version_before=self.version_before,
            version_after=self.version_after,
            payload_hash=self.payload_hash,
            prev_hash=self.prev_hash,
            hash=self.hash,
        )
