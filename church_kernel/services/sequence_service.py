"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing sequence numbers for
    per-church audit ledger positions.  Uses a dedicated counter table
    with row-level locking (``SELECT ... FOR UPDATE``) to guarantee
    uniqueness and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by AuditLogService.

Invariants enforced:
    - Sequences are strictly monotonic.  The max()+1 aggregate pattern is
      never used; the locked counter row is the sole source of truth.
    - The increment is only visible after the caller's transaction
      commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from church_kernel.logging_config import get_logger
from church_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


def church_audit_sequence(church_id: str) -> str:
    """Name of the ledger sequence for one church."""
    return f"church_audit:{church_id}"


class SequenceService:
    """
    Named counters for ledger positions.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session):
        self._session = session

    def _select(self, name: str, lock: bool):
        stmt = select(SequenceCounter).where(SequenceCounter.name == name)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(stmt).scalar_one_or_none()

    def _insert_first(self, name: str) -> SequenceCounter | None:
        """Create the counter at 1; None if a concurrent transaction won."""
        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=name, current_value=1)
            self._session.add(counter)
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
            return None
        savepoint.commit()
        return counter

    def next_value(self, sequence_name: str) -> int:
        """
        Allocate the next value of a named sequence.

        Postconditions:
            - Returns 1 on first use, otherwise one past the last
              committed value.
            - The counter row stays locked until the caller's
              transaction ends.
        """
        counter = self._select(sequence_name, lock=True)
        if counter is None:
            created = self._insert_first(sequence_name)
            if created is not None:
                value = created.current_value
                logger.debug("sequence_allocated", extra={"sequence_name": sequence_name, "value": value})
                return value
            counter = self._select(sequence_name, lock=True)
            if counter is None:
                raise RuntimeError(f"sequence counter {sequence_name} vanished after insert race")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Last allocated value without incrementing, or None if unused."""
        counter = self._select(sequence_name, lock=False)
        return counter.current_value if counter is not None else None
