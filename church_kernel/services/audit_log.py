"""
AuditLogService -- append-only, hash-chained ledger of church mutations.

Responsibility:
    Writes one immutable TransitionRecord for every mutating attempt on a
    Church (creation, profile edit, status transition), accepted or
    rejected.  Provides per-church trail queries and hash chain
    validation for tamper detection.

Architecture position:
    Kernel > Services -- imperative shell, called by the workflow engine
    and the registry facade inside their transaction.

Invariants enforced:
    - Ledger positions come from SequenceService (never max()+1), one
      named sequence per church so distinct churches never contend.
    - hash = H(church_id | action | payload_hash | prev_hash); every
      record links to its predecessor in the same church's chain.
    - Append-only: records are never modified or deleted (ORM listeners
      on TransitionRecordModel).

Failure modes:
    - AuditWriteError: the INSERT failed.  Fatal for the whole operation;
      the caller's session_scope rolls back the status change with it.
    - PersistenceError: the counter lock or INSERT timed out (retryable).
    - AuditChainBrokenError: validate_chain() found a mismatch.
"""

from datetime import timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from church_kernel.domain.church import (
    Actor,
    AuditAction,
    ChurchStatus,
    TransitionOutcome,
    TransitionRecord,
)
from church_kernel.domain.clock import Clock, SystemClock
from church_kernel.exceptions import (
    AuditChainBrokenError,
    AuditWriteError,
    PersistenceError,
)
from church_kernel.logging_config import get_logger
from church_kernel.models.transition_record import TransitionRecordModel
from church_kernel.services.sequence_service import (
    SequenceService,
    church_audit_sequence,
)
from church_kernel.utils.hashing import hash_audit_record, hash_payload

logger = get_logger("services.audit_log")


def record_payload(record: TransitionRecordModel) -> dict[str, Any]:
    """The hashed content of a ledger row (everything but the chain fields)."""
    return {
        "id": str(record.id),
        "church_id": record.church_id,
        "seq": record.seq,
        "action": record.action,
        "from_status": record.from_status,
        "to_status": record.to_status,
        "actor_id": record.actor_id,
        "actor_role": record.actor_role,
        "heritage_score_at_transition": record.heritage_score_at_transition,
        "notes": record.notes,
        "recorded_at": record.recorded_at.astimezone(timezone.utc).isoformat(),
        "outcome": record.outcome,
        "error_code": record.error_code,
        "version_before": record.version_before,
        "version_after": record.version_after,
    }


class AuditLogService:
    """
    Append and read the per-church audit ledger.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT decide authorization; callers append after the gate ran.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _last_model(self, church_id: str) -> TransitionRecordModel | None:
        return self._session.execute(
            select(TransitionRecordModel)
            .where(TransitionRecordModel.church_id == church_id)
            .order_by(TransitionRecordModel.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(
        self,
        *,
        church_id: str,
        action: AuditAction,
        actor: Actor,
        outcome: TransitionOutcome,
        from_status: ChurchStatus | None = None,
        to_status: ChurchStatus | None = None,
        heritage_score: int | None = None,
        notes: str | None = None,
        error_code: str | None = None,
        version_before: int | None = None,
        version_after: int | None = None,
    ) -> TransitionRecord:
        """
        Append one record to the church's chain and flush it.

        Postconditions:
            - The record's ``seq`` is one past the church's previous record.
            - ``record.hash == H(church_id, action, payload_hash, prev_hash)``.

        Raises:
            AuditWriteError: The record could not be written.
            PersistenceError: Lock wait or statement timed out.
        """
        try:
            seq = self._sequence_service.next_value(church_audit_sequence(church_id))
            last = self._last_model(church_id)
            prev_hash = last.hash if last is not None else None

            record = TransitionRecordModel(
                id=uuid4(),
                church_id=church_id,
                seq=seq,
                action=action.value,
                from_status=from_status.value if from_status else None,
                to_status=to_status.value if to_status else None,
                actor_id=actor.uid,
                actor_role=actor.role.value,
                heritage_score_at_transition=heritage_score,
                notes=notes or "",
                recorded_at=self._clock.now(),
                outcome=outcome.value,
                error_code=error_code if outcome == TransitionOutcome.REJECTED else None,
                version_before=version_before,
                version_after=version_after if outcome == TransitionOutcome.APPLIED else None,
                payload_hash="",
                prev_hash=prev_hash,
                hash="",
            )
            record.payload_hash = hash_payload(record_payload(record))
            record.hash = hash_audit_record(
                church_id=church_id,
                action=record.action,
                payload_hash=record.payload_hash,
                prev_hash=prev_hash,
            )

            self._session.add(record)
            self._session.flush()
        except OperationalError as exc:
            logger.error(
                "audit_write_timeout",
                extra={"church_id": church_id, "action": action.value},
            )
            raise PersistenceError("audit_append", str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.critical(
                "audit_write_failed",
                extra={"church_id": church_id, "action": action.value},
                exc_info=True,
            )
            raise AuditWriteError(church_id, str(exc)) from exc

        logger.info(
            "audit_record_appended",
            extra={
                "church_id": church_id,
                "action": action.value,
                "seq": seq,
                "outcome": outcome.value,
                "error_code": record.error_code,
            },
        )
        return record.to_dto()

    def last_record(self, church_id: str) -> TransitionRecord | None:
        """Most recent ledger record for a church, or None."""
        model = self._last_model(church_id)
        return model.to_dto() if model is not None else None

    def last_applied_transition(self, church_id: str, version_after: int) -> TransitionRecord | None:
        """Newest applied status transition that produced ``version_after``.

        Rejected attempts ledgered after it are skipped.
        """
        model = self._session.execute(
            select(TransitionRecordModel)
            .where(
                TransitionRecordModel.church_id == church_id,
                TransitionRecordModel.action == AuditAction.STATUS_TRANSITION.value,
                TransitionRecordModel.outcome == TransitionOutcome.APPLIED.value,
                TransitionRecordModel.version_after == version_after,
            )
            .order_by(TransitionRecordModel.seq.desc())
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def get_record(self, record_id: UUID) -> TransitionRecord | None:
        model = self._session.get(TransitionRecordModel, record_id)
        return model.to_dto() if model is not None else None

    def get_trail(self, church_id: str, limit: int | None = None) -> list[TransitionRecord]:
        """All ledger records for a church in chain order."""
        stmt = (
            select(TransitionRecordModel)
            .where(TransitionRecordModel.church_id == church_id)
            .order_by(TransitionRecordModel.seq)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def count(self, church_id: str) -> int:
        return len(self.get_trail(church_id))

    def validate_chain(self, church_id: str) -> bool:
        """
        Validate one church's chain end to end.

        Postconditions:
            - Returns True only if every record's payload hash and chain
              hash match their recomputed values, every ``prev_hash``
              matches its predecessor's ``hash`` and ``seq`` runs 1..n.

        Raises:
            AuditChainBrokenError: At the first record that fails.
        """
        records = self._session.execute(
            select(TransitionRecordModel)
            .where(TransitionRecordModel.church_id == church_id)
            .order_by(TransitionRecordModel.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for expected_seq, record in enumerate(records, start=1):
            if record.seq != expected_seq:
                self._broken(record, str(expected_seq), str(record.seq))

            if record.prev_hash != prev_hash:
                self._broken(record, prev_hash or "None", record.prev_hash or "None")

            payload_hash = hash_payload(record_payload(record))
            if record.payload_hash != payload_hash:
                self._broken(record, payload_hash, record.payload_hash)

            expected_hash = hash_audit_record(
                church_id=record.church_id,
                action=record.action,
                payload_hash=record.payload_hash,
                prev_hash=record.prev_hash,
            )
            if record.hash != expected_hash:
                self._broken(record, expected_hash, record.hash)

            prev_hash = record.hash

        logger.info(
            "audit_chain_valid",
            extra={"church_id": church_id, "record_count": len(records)},
        )
        return True

    def validate_all_chains(self) -> int:
        """Validate every church's chain; returns the number of chains checked."""
        church_ids = self._session.execute(
            select(TransitionRecordModel.church_id).distinct()
        ).scalars().all()
        for church_id in church_ids:
            self.validate_chain(church_id)
        return len(church_ids)

    def _broken(self, record: TransitionRecordModel, expected: str, actual: str) -> None:
        logger.critical(
            "audit_chain_broken",
            extra={
                "church_id": record.church_id,
                "record_id": str(record.id),
                "seq": record.seq,
            },
        )
        raise AuditChainBrokenError(str(record.id), expected, actual)
