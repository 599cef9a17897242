"""
church_services.workflow_engine -- Church publication state machine.

Responsibility:
    Executes ``request_transition``: edge lookup, authorization through
    the gate, guard evaluation against a freshly recomputed heritage
    classification, optimistic version check, and the atomic write of the
    new status together with its audit record.  Every attempt, accepted
    or rejected, leaves exactly one ledger record (idempotent replays
    leave none).

Architecture position:
    Services layer.  May import from church_engines/ (pure engines) and
    church_kernel/ (domain, services, models).  Runs inside the caller's
    transaction; never commits.

Check order (first failure wins):
    1. church exists                        NOT_FOUND
    2. replay of the applied transition     -> applied, nothing written
    3. edge (current, target) exists        INVALID_TRANSITION
    4. gate: role on edge, then boundary    UNAUTHORIZED / FORBIDDEN
    5. edge guard                           GUARD_FAILED
    6. expected_version == stored version   CONFLICT
    7. compare-and-swap + audit append      CONFLICT if the swap lost

    A stale expected_version turns a missing edge (3) or a failed guard
    (5) into CONFLICT: those verdicts describe a state the caller has not
    read yet, and two racing requests must end as one applied and one
    CONFLICT whichever one the database serializes first.

Failure modes:
    - Domain rejections come back as a rejected TransitionResult, never
      as exceptions.
    - AuditWriteError / PersistenceError propagate: the caller's
      transaction rolls back and nothing is considered applied.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from church_engines.authorization import AuthorizationGate, GateAction
from church_engines.heritage import HeritageClassifierLike
from church_kernel.domain.church import (
    Actor,
    AuditAction,
    Church,
    ChurchStatus,
    HeritageAssessment,
    TransitionApplied,
    TransitionOutcome,
    TransitionRecord,
    TransitionResult,
)
from church_kernel.domain.clock import Clock, SystemClock
from church_kernel.domain.validation import parse_status, validate_identifier
from church_kernel.domain.workflow import Edge, GuardKind, edges_from, find_edge
from church_kernel.exceptions import (
    ChurchNotFoundError,
    ConflictError,
    GuardFailedError,
    InvalidTransitionError,
    TransitionNotAppliedError,
    ValidationError,
)
from church_kernel.logging_config import LogContext, get_logger
from church_kernel.services.audit_log import AuditLogService
from church_kernel.services.church_repository import (
    CasOutcome,
    ChurchRepository,
    SqlChurchRepository,
)

logger = get_logger("services.workflow_engine")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_APPLIED = "applied"
OUTCOME_REPLAYED = "replayed"
OUTCOME_REJECTED = "rejected"


def _emit_workflow_trace(
    church_id: str,
    actor: Actor,
    from_status: ChurchStatus | None,
    to_status: ChurchStatus | None,
    outcome: str,
    duration_ms: float,
    error_code: str | None = None,
    reason: str = "",
    heritage_score: int | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit one structured workflow_transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "church_id": church_id,
        "actor_id": actor.uid,
        "actor_role": actor.role.value,
        "from_status": from_status.value if from_status else None,
        "to_status": to_status.value if to_status else None,
        "outcome": outcome,
        "error_code": error_code,
        "reason": reason,
        "heritage_score": heritage_score,
        "duration_ms": round(duration_ms, 3),
    }
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)
    if outcome_sink is not None:
        outcome_sink(dict(record, message="workflow_transition"))


def guard_holds(
    guard: GuardKind,
    assessment: HeritageAssessment,
    notes: str | None,
) -> tuple[bool, str]:
    """Dispatch on the tagged guard kind.  Returns (holds, reason)."""
    if guard == GuardKind.NONE:
        return True, ""
    if guard == GuardKind.REQUIRES_HERITAGE:
        if assessment.is_heritage:
            return True, ""
        return False, (
            f"church is not heritage (score {assessment.score}); "
            "approve directly instead of forwarding"
        )
    if guard == GuardKind.REQUIRES_NON_HERITAGE:
        if not assessment.is_heritage:
            return True, ""
        return False, (
            f"church is heritage (score {assessment.score}); "
            "it must go through heritage review"
        )
    if guard == GuardKind.REQUIRES_NOTE:
        if notes and notes.strip():
            return True, ""
        return False, "a re-evaluation note is required"
    raise ValueError(f"unknown guard kind {guard!r}")


def transition_event(result: TransitionResult, diocese: str | None) -> TransitionApplied:
    """Build the TransitionApplied event for an applied result."""
    record = result.record
    if record is None or not record.applied:
        raise TransitionNotAppliedError(
            record.church_id if record else "", result.outcome.value,
        )
    return TransitionApplied(
        church_id=record.church_id,
        from_status=record.from_status,
        to_status=record.to_status,
        actor_id=record.actor_id,
        timestamp=record.recorded_at,
        record_id=record.id,
        diocese=diocese,
        notes=record.notes,
    )


class WorkflowEngine:
    """
    Thin coordinator over the edge table, the gate, the classifier and the
    repository.

    Collaborators are constructor-injected; the classifier only has to
    satisfy ``HeritageClassifierLike``.
    """

    def __init__(
        self,
        repository: ChurchRepository,
        audit_log: AuditLogService,
        classifier: HeritageClassifierLike,
        gate: AuthorizationGate | None = None,
        clock: Clock | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._repository = repository
        self._audit = audit_log
        self._classifier = classifier
        self._gate = gate or AuthorizationGate()
        self._clock = clock or SystemClock()
        self._outcome_sink = outcome_sink

    @classmethod
    def for_session(cls, session, classifier, clock=None, gate=None, outcome_sink=None):
        clock = clock or SystemClock()
        return cls(
            repository=SqlChurchRepository(session),
            audit_log=AuditLogService(session, clock),
            classifier=classifier,
            gate=gate,
            clock=clock,
            outcome_sink=outcome_sink,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def request_transition(
        self,
        actor: Actor,
        church_id: str,
        expected_version: int,
        target_status: ChurchStatus | str,
        notes: str | None = None,
    ) -> TransitionResult:
        """
        Move a church along one edge of the publication workflow.

        Raises:
            ValidationError: ``church_id`` is not an identifier (nothing
                can be ledgered against it).
            AuditWriteError, PersistenceError: the write failed; the
                caller must roll back.
        """
        t0 = time.monotonic()
        church_id = validate_identifier("church_id", church_id)

        church = self._repository.get(church_id)
        assessment = (
            self._classifier.classify(church.profile()) if church is not None else None
        )

        try:
            target = parse_status(target_status)
            if isinstance(expected_version, bool) or not isinstance(expected_version, int):
                raise ValidationError("expected_version", "must be an integer")
        except ValidationError as exc:
            return self._reject(t0, actor, church_id, church, None, assessment, notes, exc.code, str(exc))

        if church is None:
            exc = ChurchNotFoundError(church_id)
            return self._reject(t0, actor, church_id, None, target, None, notes, exc.code, str(exc))

        replay = self._idempotent_replay(actor, church, expected_version, target)
        if replay is not None:
            _emit_workflow_trace(
                church_id, actor, replay.from_status, target, OUTCOME_REPLAYED,
                (time.monotonic() - t0) * 1000,
                reason="idempotent retry of an applied transition",
                heritage_score=assessment.score,
                outcome_sink=self._outcome_sink,
            )
            return TransitionResult(
                outcome=TransitionOutcome.APPLIED,
                record=replay,
                reason="idempotent retry of an applied transition",
                classification=assessment,
                idempotent_replay=True,
            )

        edge = find_edge(church.status, target)
        if edge is None:
            exc = self._stale(church, expected_version) or InvalidTransitionError(
                church.status.value, target.value,
            )
            return self._reject(t0, actor, church_id, church, target, assessment, notes, exc.code, str(exc))

        decision = self._gate.evaluate(actor, GateAction.TRANSITION, church=church, edge=edge)
        if not decision.allowed:
            return self._reject(
                t0, actor, church_id, church, target, assessment, notes,
                decision.error_code, decision.reason,
            )

        holds, why = guard_holds(edge.guard, assessment, notes)
        if not holds:
            stale = self._stale(church, expected_version)
            if stale is not None:
                return self._reject(t0, actor, church_id, church, target, assessment, notes, stale.code, str(stale))
            exc = GuardFailedError(edge.guard.value, church.status.value, target.value, why)
            return self._reject(t0, actor, church_id, church, target, assessment, notes, exc.code, why)

        if expected_version != church.version:
            exc = ConflictError(church_id, expected_version, church.version)
            return self._reject(t0, actor, church_id, church, target, assessment, notes, exc.code, str(exc))

        swapped = self._repository.compare_and_swap(
            church_id, expected_version, target, self._clock.now(),
        )
        if swapped == CasOutcome.CONFLICT:
            current = self._repository.get(church_id)
            exc = ConflictError(
                church_id, expected_version, current.version if current else None,
            )
            return self._reject(t0, actor, church_id, church, target, assessment, notes, exc.code, str(exc))

        record = self._audit.append(
            church_id=church_id,
            action=AuditAction.STATUS_TRANSITION,
            actor=actor,
            outcome=TransitionOutcome.APPLIED,
            from_status=church.status,
            to_status=target,
            heritage_score=assessment.score,
            notes=notes,
            version_before=expected_version,
            version_after=expected_version + 1,
        )
        logger.info(
            "transition_applied",
            extra={
                "church_id": church_id,
                "from_status": church.status.value,
                "to_status": target.value,
                "edge_action": edge.action,
                "version": expected_version + 1,
            },
        )
        _emit_workflow_trace(
            church_id, actor, church.status, target, OUTCOME_APPLIED,
            (time.monotonic() - t0) * 1000,
            heritage_score=assessment.score,
            outcome_sink=self._outcome_sink,
        )
        return TransitionResult(
            outcome=TransitionOutcome.APPLIED,
            record=record,
            classification=assessment,
        )

    def available_transitions(self, actor: Actor, church: Church) -> list[Edge]:
        """Edges the actor may attempt from the church's current status.

        Role and boundary filtered; guards are not evaluated.
        """
        return [
            edge
            for edge in edges_from(church.status)
            if self._gate.evaluate(
                actor, GateAction.TRANSITION, church=church, edge=edge,
            ).allowed
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _stale(church: Church, expected_version: int) -> ConflictError | None:
        if expected_version == church.version:
            return None
        return ConflictError(church.id, expected_version, church.version)

    def _idempotent_replay(
        self,
        actor: Actor,
        church: Church,
        expected_version: int,
        target: ChurchStatus,
    ) -> TransitionRecord | None:
        """The previously applied record if this request repeats it."""
        if church.status != target or expected_version != church.version:
            return None
        last = self._audit.last_applied_transition(church.id, church.version)
        if last is None or last.to_status != target or last.actor_id != actor.uid:
            return None
        edge = find_edge(last.from_status, target)
        if edge is None:
            return None
        # A replay is still subject to the gate.
        if not self._gate.evaluate(
            actor, GateAction.TRANSITION, church=church, edge=edge,
        ).allowed:
            return None
        return last

    def _reject(
        self,
        t0: float,
        actor: Actor,
        church_id: str,
        church: Church | None,
        target: ChurchStatus | None,
        assessment: HeritageAssessment | None,
        notes: str | None,
        error_code: str,
        reason: str,
    ) -> TransitionResult:
        record = self._audit.append(
            church_id=church_id,
            action=AuditAction.STATUS_TRANSITION,
            actor=actor,
            outcome=TransitionOutcome.REJECTED,
            from_status=church.status if church else None,
            to_status=target,
            heritage_score=assessment.score if assessment else None,
            notes=notes,
            error_code=error_code,
            version_before=church.version if church else None,
        )
        logger.info(
            "transition_rejected",
            extra={
                "church_id": church_id,
                "error_code": error_code,
                "reason": reason,
            },
        )
        _emit_workflow_trace(
            church_id, actor,
            church.status if church else None, target,
            OUTCOME_REJECTED, (time.monotonic() - t0) * 1000,
            error_code=error_code, reason=reason,
            heritage_score=assessment.score if assessment else None,
            outcome_sink=self._outcome_sink,
        )
        return TransitionResult(
            outcome=TransitionOutcome.REJECTED,
            record=record,
            error_code=error_code,
            reason=reason,
            classification=assessment,
        )


__all__ = [
    "WorkflowEngine",
    "guard_holds",
    "transition_event",
]
