"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The audit ledger is the forensic record of every attempt to move a church
through the publication workflow.  A record that can be edited or deleted
proves nothing, so ledger rows are append-only from the moment they are
flushed.  Church rows are never hard-deleted either; a church leaves
public view only through its status.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database.
We register listeners that intercept them:

    session.flush()
         |
         v
    [before_update] --> _check_transition_record_update() --> ImmutabilityViolationError
    [before_delete] --> _check_transition_record_delete() --> ImmutabilityViolationError
    [before_delete] --> _check_church_delete() ------------> ImmutabilityViolationError

If a check fails the flush is aborted and the surrounding transaction is
rolled back by the caller's session_scope.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | When Immutable            | Operation blocked
-----------------------|---------------------------|-------------------
TransitionRecordModel  | ALWAYS (from creation)    | UPDATE, DELETE
ChurchModel            | ALWAYS                    | DELETE

Bulk ``session.execute(update(...))`` statements bypass mapper events;
the repository never issues them against the ledger table.

===============================================================================
USAGE
===============================================================================

Registered by create_tables(); safe to call more than once:

    from church_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()
"""

from sqlalchemy import event

from church_kernel.exceptions import ImmutabilityViolationError
from church_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_transition_record_update(mapper, connection, target):
    """Ledger records are immutable from creation."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransitionRecord",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransitionRecord",
        entity_id=str(target.id),
        reason="Audit ledger records cannot be modified",
    )


def _check_transition_record_delete(mapper, connection, target):
    """Ledger records can never be deleted."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransitionRecord",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransitionRecord",
        entity_id=str(target.id),
        reason="Audit ledger records cannot be deleted",
    )


def _check_church_delete(mapper, connection, target):
    """Churches are never hard-deleted."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Church",
            "entity_id": target.id,
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Church",
        entity_id=target.id,
        reason="Church records are never deleted",
    )


def _listeners():
    from church_kernel.models.church import ChurchModel
    from church_kernel.models.transition_record import TransitionRecordModel

    return (
        (TransitionRecordModel, "before_update", _check_transition_record_update),
        (TransitionRecordModel, "before_delete", _check_transition_record_delete),
        (ChurchModel, "before_delete", _check_church_delete),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)
