"""
church_services.registry -- Caller-facing facade of the church registry.

Responsibility:
    One method per caller-facing operation (dashboard, mobile app,
    scripts).  Each call owns exactly one transaction: it opens a
    session, runs the gate and the kernel services, commits, and only
    then dispatches TransitionApplied events.

Architecture position:
    Services layer -- the outermost layer of the package.  Wires
    church_config (optional), church_engines and church_kernel together.

Invariants enforced:
    - Every mutating call passes the authorization gate before any state
      change.
    - A rejected mutating attempt on a church is ledgered and the ledger
      row committed even though the church row is untouched; the typed
      error is raised after the commit.
    - Events are dispatched after commit, never for rolled-back work.

Failure modes:
    - Typed ChurchRegistryError subclasses (see church_kernel.exceptions).
    - AuditWriteError / PersistenceError: nothing committed.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generator
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from church_engines.authorization import AuthorizationGate, GateAction
from church_engines.heritage import HeritageClassifierLike, WeightedHeritageClassifier
from church_kernel.db.engine import session_scope
from church_kernel.domain.church import (
    Actor,
    AuditAction,
    Church,
    ChurchDraft,
    ChurchProfile,
    ChurchQuery,
    ChurchStatus,
    HeritageAssessment,
    TransitionOutcome,
    TransitionRecord,
    TransitionResult,
)
from church_kernel.domain.clock import Clock, SystemClock
from church_kernel.domain.validation import (
    validate_draft,
    validate_identifier,
    validate_new_actor,
    validate_profile_changes,
)
from church_kernel.domain.workflow import Edge
from church_kernel.exceptions import (
    ChurchAlreadyExistsError,
    ChurchNotFoundError,
    ChurchRegistryError,
    ConflictError,
    ForbiddenError,
    UnauthorizedError,
)
from church_kernel.logging_config import LogContext, get_logger
from church_kernel.services.actor_service import ActorService
from church_kernel.services.audit_log import AuditLogService
from church_kernel.services.church_repository import (
    CasOutcome,
    SqlChurchRepository,
    apply_changes,
)
from church_services.notifications import LoggingDispatcher, NotificationDispatcher
from church_services.workflow_engine import WorkflowEngine, transition_event

logger = get_logger("services.registry")


@dataclass(frozen=True)
class _Rejected:
    """A domain error to raise once the ledger row for it has committed."""

    error: ChurchRegistryError


def _access_error(actor: Actor, action: GateAction, decision) -> ChurchRegistryError:
    if decision.error_code == UnauthorizedError.code:
        return UnauthorizedError(actor.uid, action.value, decision.reason)
    return ForbiddenError(actor.uid, action.value, decision.reason)


class ChurchRegistry:
    """
    Transactional entrypoints for every caller-facing operation.

    Args:
        session_factory: sessionmaker bound to the registry database.
        classifier: any HeritageClassifierLike; built from ``config`` (or
            defaults) when omitted.
        dispatcher: receives TransitionApplied after commit.
        clock: time source for ledger timestamps.
        config: optional church_config.RegistryConfig.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        classifier: HeritageClassifierLike | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        config: Any = None,
        gate: AuthorizationGate | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        if classifier is None:
            if config is not None:
                from church_config.bridges import build_classifier

                classifier = build_classifier(config)
            else:
                classifier = WeightedHeritageClassifier()
        self._session_factory = session_factory
        self._classifier = classifier
        self._dispatcher = dispatcher or LoggingDispatcher()
        self._clock = clock or SystemClock()
        self._gate = gate or AuthorizationGate()
        self._outcome_sink = outcome_sink

    @property
    def classifier(self) -> HeritageClassifierLike:
        return self._classifier

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _scope(self, actor: Actor, church_id: str | None = None) -> Generator[Session, None, None]:
        with LogContext.bind(
            correlation_id=uuid4().hex,
            actor_id=actor.uid,
            church_id=church_id,
        ):
            with session_scope(self._session_factory) as session:
                yield session

    def _run(self, actor: Actor, church_id: str | None, fn: Callable[[Session], Any]) -> Any:
        with self._scope(actor, church_id) as session:
            result = fn(session)
        if isinstance(result, _Rejected):
            raise result.error
        return result

    @staticmethod
    def _resolve_actor(session: Session, actor: Actor) -> Actor:
        """Prefer the stored profile so deactivation takes effect immediately."""
        stored = ActorService(session).find(actor.uid)
        return stored if stored is not None else actor

    def _engine(self, session: Session) -> WorkflowEngine:
        return WorkflowEngine.for_session(
            session,
            self._classifier,
            clock=self._clock,
            gate=self._gate,
            outcome_sink=self._outcome_sink,
        )

    def _load_readable(self, session: Session, actor: Actor, church_id: str, action: GateAction) -> Church:
        church = SqlChurchRepository(session).get(church_id)
        if church is None:
            raise ChurchNotFoundError(church_id)
        self._gate.require(actor, action, church=church)
        return church

    # ------------------------------------------------------------------
    # Churches
    # ------------------------------------------------------------------

    def create_church(self, actor: Actor, draft: ChurchDraft) -> Church:
        """
        Create a pending church for a parish.

        Raises:
            ValidationError: Malformed draft.
            UnauthorizedError / ForbiddenError: Gate denial (ledgered).
            ChurchAlreadyExistsError: The parish already has a church
                (ledgered; the existing church is untouched).
        """
        draft = validate_draft(draft)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            audit = AuditLogService(session, self._clock)
            repository = SqlChurchRepository(session)
            assessment = self._classifier.classify(draft.profile())

            def reject(error: ChurchRegistryError, version: int | None = None) -> _Rejected:
                audit.append(
                    church_id=draft.id,
                    action=AuditAction.CHURCH_CREATED,
                    actor=who,
                    outcome=TransitionOutcome.REJECTED,
                    to_status=ChurchStatus.PENDING,
                    heritage_score=assessment.score,
                    error_code=error.code,
                    version_before=version,
                )
                logger.info(
                    "church_create_rejected",
                    extra={"church_id": draft.id, "error_code": error.code},
                )
                return _Rejected(error)

            decision = self._gate.evaluate(
                who, GateAction.CREATE_CHURCH, diocese=draft.diocese, parish=draft.id,
            )
            if not decision.allowed:
                return reject(_access_error(who, GateAction.CREATE_CHURCH, decision))

            existing = repository.get(draft.id)
            if existing is not None:
                return reject(ChurchAlreadyExistsError(draft.id), existing.version)

            try:
                church = repository.create(draft, assessment, who.uid, self._clock.now())
            except ChurchAlreadyExistsError as exc:
                return reject(exc)

            audit.append(
                church_id=church.id,
                action=AuditAction.CHURCH_CREATED,
                actor=who,
                outcome=TransitionOutcome.APPLIED,
                to_status=ChurchStatus.PENDING,
                heritage_score=assessment.score,
                version_after=church.version,
            )
            logger.info(
                "church_created",
                extra={
                    "church_id": church.id,
                    "diocese": church.diocese,
                    "heritage_score": assessment.score,
                    "heritage_confidence": assessment.confidence.value,
                },
            )
            return church

        return self._run(actor, draft.id, work)

    def get_church(self, actor: Actor, church_id: str) -> Church:
        """
        Raises:
            ChurchNotFoundError, UnauthorizedError, ForbiddenError
        """
        church_id = validate_identifier("church_id", church_id)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            return self._load_readable(session, who, church_id, GateAction.READ_CHURCH)

        return self._run(actor, church_id, work)

    def list_churches(self, actor: Actor, query: ChurchQuery | None = None) -> list[Church]:
        """Churches matching ``query`` that the actor may read."""
        query = query or ChurchQuery()

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            return SqlChurchRepository(session).list_churches(
                query, visible=lambda church: self._gate.can_read(who, church),
            )

        return self._run(actor, None, work)

    def update_church_profile(
        self,
        actor: Actor,
        church_id: str,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Church:
        """
        Edit profile fields under optimistic concurrency and rescore.

        Raises:
            ValidationError: Malformed or unknown field.
            ChurchNotFoundError, UnauthorizedError, ForbiddenError,
            ConflictError: ledgered, then raised.
        """
        church_id = validate_identifier("church_id", church_id)
        normalized = validate_profile_changes(changes)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            audit = AuditLogService(session, self._clock)
            repository = SqlChurchRepository(session)
            church = repository.get(church_id)

            def reject(error: ChurchRegistryError, score: int | None = None) -> _Rejected:
                audit.append(
                    church_id=church_id,
                    action=AuditAction.PROFILE_UPDATED,
                    actor=who,
                    outcome=TransitionOutcome.REJECTED,
                    from_status=church.status if church else None,
                    to_status=church.status if church else None,
                    heritage_score=score,
                    error_code=error.code,
                    version_before=church.version if church else None,
                )
                logger.info(
                    "profile_update_rejected",
                    extra={"church_id": church_id, "error_code": error.code},
                )
                return _Rejected(error)

            if church is None:
                return reject(ChurchNotFoundError(church_id))

            decision = self._gate.evaluate(
                who, GateAction.UPDATE_PROFILE, church=church, fields=normalized.keys(),
            )
            if not decision.allowed:
                return reject(
                    _access_error(who, GateAction.UPDATE_PROFILE, decision),
                    church.heritage_score,
                )

            preview = apply_changes(church, normalized)
            assessment = self._classifier.classify(preview.profile())

            if expected_version != church.version:
                return reject(
                    ConflictError(church_id, expected_version, church.version),
                    assessment.score,
                )

            swapped = repository.update_profile(
                church_id, expected_version, normalized, assessment, self._clock.now(),
            )
            if swapped == CasOutcome.CONFLICT:
                current = repository.get(church_id)
                return reject(
                    ConflictError(church_id, expected_version, current.version if current else None),
                    assessment.score,
                )

            audit.append(
                church_id=church_id,
                action=AuditAction.PROFILE_UPDATED,
                actor=who,
                outcome=TransitionOutcome.APPLIED,
                from_status=church.status,
                to_status=church.status,
                heritage_score=assessment.score,
                notes="updated: " + ", ".join(sorted(normalized)),
                version_before=expected_version,
                version_after=expected_version + 1,
            )
            logger.info(
                "profile_updated",
                extra={
                    "church_id": church_id,
                    "fields": sorted(normalized),
                    "heritage_score": assessment.score,
                    "version": expected_version + 1,
                },
            )
            return repository.get(church_id)

        return self._run(actor, church_id, work)

    # ------------------------------------------------------------------
    # Workflow
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
        Ask the workflow engine to move a church along one edge.

        Domain rejections come back as a rejected TransitionResult (and
        are ledgered).  On an applied, non-replayed result the
        TransitionApplied event is dispatched after commit.
        """
        diocese: list[str | None] = [None]

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            result = self._engine(session).request_transition(
                who, church_id, expected_version, target_status, notes,
            )
            if result.applied and not result.idempotent_replay:
                church = SqlChurchRepository(session).get(result.record.church_id)
                diocese[0] = church.diocese if church else None
            return result

        result = self._run(actor, church_id, work)

        if result.applied and not result.idempotent_replay:
            self._dispatch(transition_event(result, diocese[0]))
        return result

    def available_transitions(self, actor: Actor, church_id: str) -> list[Edge]:
        """Next actions the actor may attempt on the church (guards not evaluated)."""
        church_id = validate_identifier("church_id", church_id)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            church = self._load_readable(session, who, church_id, GateAction.READ_CHURCH)
            return self._engine(session).available_transitions(who, church)

        return self._run(actor, church_id, work)

    def _dispatch(self, event) -> None:
        try:
            self._dispatcher.dispatch(event)
        except Exception:
            # Delivery is the dispatcher's concern; the transition is committed.
            logger.error(
                "notification_dispatch_failed",
                extra={"church_id": event.church_id, "record_id": str(event.record_id)},
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def get_audit_trail(self, actor: Actor, church_id: str) -> list[TransitionRecord]:
        church_id = validate_identifier("church_id", church_id)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            self._load_readable(session, who, church_id, GateAction.READ_AUDIT)
            return AuditLogService(session, self._clock).get_trail(church_id)

        return self._run(actor, church_id, work)

    def verify_audit_chain(self, actor: Actor, church_id: str) -> bool:
        """
        Raises:
            AuditChainBrokenError: The church's ledger was tampered with.
        """
        church_id = validate_identifier("church_id", church_id)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            self._load_readable(session, who, church_id, GateAction.READ_AUDIT)
            return AuditLogService(session, self._clock).validate_chain(church_id)

        return self._run(actor, church_id, work)

    # ------------------------------------------------------------------
    # Classification preview
    # ------------------------------------------------------------------

    def classify(self, profile: ChurchProfile) -> HeritageAssessment:
        """Score a profile without touching storage."""
        return self._classifier.classify(profile)

    # ------------------------------------------------------------------
    # Actors
    # ------------------------------------------------------------------

    def provision_actor(self, actor: Actor, new_actor: Actor) -> Actor:
        """
        Create a parish_secretary in the caller's diocese.

        Raises:
            ValidationError, UnauthorizedError, ForbiddenError
        """
        candidate = validate_new_actor(new_actor)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            self._gate.require(who, GateAction.PROVISION_ACTOR, target=candidate)
            return ActorService(session, self._clock).create(candidate, created_by_id=who.uid)

        return self._run(actor, None, work)

    def deactivate_actor(self, actor: Actor, uid: str) -> Actor:
        """
        Raises:
            ActorNotFoundError, UnauthorizedError, ForbiddenError
        """
        uid = validate_identifier("uid", uid)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            service = ActorService(session, self._clock)
            target = service.get(uid)
            self._gate.require(who, GateAction.DEACTIVATE_ACTOR, target=target)
            return service.deactivate(uid, deactivated_by_id=who.uid)

        return self._run(actor, None, work)

    def get_actor(self, actor: Actor, uid: str) -> Actor:
        """
        Read an actor profile: the actor itself, or a chancery office of
        the same diocese.

        Raises:
            ActorNotFoundError, UnauthorizedError, ForbiddenError
        """
        uid = validate_identifier("uid", uid)

        def work(session: Session):
            who = self._resolve_actor(session, actor)
            target = ActorService(session, self._clock).get(uid)
            self._gate.require(who, GateAction.READ_ACTOR, target=target)
            return target

        return self._run(actor, None, work)
