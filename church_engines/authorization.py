"""
church_engines.authorization -- The single authorization gate.

Responsibility:
    Answer allow/deny for any (actor, action, resource) triple.  Every
    read and every mutating path (profile edits, church creation,
    workflow transitions, audit reads, actor provisioning) asks this
    module, and nothing else enforces roles or tenant boundaries.

Architecture position:
    Engines -- pure policy evaluation, zero I/O.
    May only import church_kernel/domain types and exceptions.

Evaluation order (first failure wins):
    1. inactive or deleted actor            -> UNAUTHORIZED
    2. role does not hold the action (or,
       for transitions, is not on the edge) -> UNAUTHORIZED
    3. diocese / parish / protected field   -> FORBIDDEN

Invariants enforced:
    - The diocese check on writes is unconditional; no role seniority
      overrides it.
    - A parish_secretary acts on exactly one church: the one whose id is
      its parish.
    - Anything approved is readable by everyone, anonymous included.
    - Diocese and parish scopes compare case-insensitively; a caller-built
      Actor need not be normalized.
    - Actor profiles are readable by the actor itself and by a chancery
      office of the same diocese.

Failure modes:
    - ValidationError (raised, not returned) for a profile edit naming a
      field that does not exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from church_kernel.domain.church import (
    Actor,
    ActorRole,
    Church,
    ChurchStatus,
)
from church_kernel.domain.validation import EDITABLE_FIELDS, PROTECTED_FIELDS
from church_kernel.domain.workflow import Edge
from church_kernel.exceptions import (
    ForbiddenError,
    UnauthorizedError,
    ValidationError,
)
from church_kernel.logging_config import get_logger

logger = get_logger("engines.authorization")


class GateAction(str, Enum):
    READ_CHURCH = "read_church"
    CREATE_CHURCH = "create_church"
    UPDATE_PROFILE = "update_profile"
    TRANSITION = "transition"
    READ_AUDIT = "read_audit"
    PROVISION_ACTOR = "provision_actor"
    DEACTIVATE_ACTOR = "deactivate_actor"
    READ_ACTOR = "read_actor"


ROLE_ACTIONS: dict[ActorRole, frozenset[GateAction]] = {
    ActorRole.CHANCERY_OFFICE: frozenset(GateAction),
    ActorRole.MUSEUM_RESEARCHER: frozenset({
        GateAction.READ_CHURCH,
        GateAction.UPDATE_PROFILE,
        GateAction.TRANSITION,
        GateAction.READ_AUDIT,
    }),
    ActorRole.PARISH_SECRETARY: frozenset({
        GateAction.READ_CHURCH,
        GateAction.CREATE_CHURCH,
        GateAction.UPDATE_PROFILE,
        GateAction.TRANSITION,
        GateAction.READ_AUDIT,
    }),
    ActorRole.PUBLIC: frozenset({GateAction.READ_CHURCH}),
}

# Fields a museum researcher may touch during heritage validation.
HERITAGE_VALIDATION_FIELDS: frozenset[str] = frozenset({
    "classification",
    "heritage_notes",
})

UNAUTHORIZED = UnauthorizedError.code
FORBIDDEN = ForbiddenError.code


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of one gate evaluation."""

    allowed: bool
    error_code: str | None = None
    reason: str = ""

    @classmethod
    def allow(cls) -> AccessDecision:
        return cls(allowed=True)

    @classmethod
    def unauthorized(cls, reason: str) -> AccessDecision:
        return cls(allowed=False, error_code=UNAUTHORIZED, reason=reason)

    @classmethod
    def forbidden(cls, reason: str) -> AccessDecision:
        return cls(allowed=False, error_code=FORBIDDEN, reason=reason)


ALLOW = AccessDecision.allow()


def _scope_key(value: str | None) -> str | None:
    return value.strip().lower() if value is not None else None


class AuthorizationGate:
    """
    Stateless policy evaluator.

    ``evaluate`` returns an AccessDecision; ``require`` raises the typed
    error for a denial.  Resource arguments are keyword-only; which ones
    an action needs:

        READ_CHURCH, READ_AUDIT   church
        CREATE_CHURCH             diocese, parish (the new church's id)
        UPDATE_PROFILE            church, fields
        TRANSITION                church, edge
        PROVISION_ACTOR           target (the actor being created)
        DEACTIVATE_ACTOR          target
        READ_ACTOR                target (the actor being read)
    """

    def evaluate(
        self,
        actor: Actor,
        action: GateAction,
        *,
        church: Church | None = None,
        diocese: str | None = None,
        parish: str | None = None,
        edge: Edge | None = None,
        fields: Iterable[str] | None = None,
        target: Actor | None = None,
    ) -> AccessDecision:
        if not actor.is_enabled:
            return AccessDecision.unauthorized(f"actor {actor.uid} is inactive")

        # Published churches are public regardless of role.
        if (
            action == GateAction.READ_CHURCH
            and church is not None
            and church.status == ChurchStatus.APPROVED
        ):
            return ALLOW

        if (
            action == GateAction.READ_ACTOR
            and target is not None
            and target.uid == actor.uid
        ):
            return ALLOW

        if action not in ROLE_ACTIONS.get(actor.role, frozenset()):
            return AccessDecision.unauthorized(
                f"role {actor.role.value} may not {action.value}"
            )

        if action == GateAction.READ_CHURCH:
            return self._read(actor, church)
        if action == GateAction.READ_AUDIT:
            return self._read(actor, church)
        if action == GateAction.CREATE_CHURCH:
            return self._create(actor, diocese, parish)
        if action == GateAction.UPDATE_PROFILE:
            return self._update(actor, church, fields)
        if action == GateAction.TRANSITION:
            return self._transition(actor, church, edge)
        if action == GateAction.READ_ACTOR:
            return self._read_actor(actor, target)
        return self._manage_actor(actor, action, target)

    def require(self, actor: Actor, action: GateAction, **resource) -> None:
        """Evaluate and raise UnauthorizedError / ForbiddenError on denial."""
        decision = self.evaluate(actor, action, **resource)
        if decision.allowed:
            return
        logger.info(
            "access_denied",
            extra={
                "actor_id": actor.uid,
                "role": actor.role.value,
                "action": action.value,
                "error_code": decision.error_code,
                "reason": decision.reason,
            },
        )
        if decision.error_code == UNAUTHORIZED:
            raise UnauthorizedError(actor.uid, action.value, decision.reason)
        raise ForbiddenError(actor.uid, action.value, decision.reason)

    def can_read(self, actor: Actor, church: Church) -> bool:
        return self.evaluate(actor, GateAction.READ_CHURCH, church=church).allowed

    def filter_readable(self, actor: Actor, churches: Iterable[Church]) -> list[Church]:
        return [c for c in churches if self.can_read(actor, c)]

    # ------------------------------------------------------------------
    # Boundary checks
    # ------------------------------------------------------------------

    @staticmethod
    def _diocese_boundary(actor: Actor, diocese: str) -> AccessDecision:
        if _scope_key(actor.diocese) != _scope_key(diocese):
            return AccessDecision.forbidden(
                f"actor diocese {actor.diocese} does not match church diocese {diocese}"
            )
        return ALLOW

    def _parish_boundary(self, actor: Actor, diocese: str, parish: str) -> AccessDecision:
        decision = self._diocese_boundary(actor, diocese)
        if not decision.allowed:
            return decision
        if _scope_key(actor.parish) != _scope_key(parish):
            return AccessDecision.forbidden(
                f"actor parish {actor.parish} does not match church {parish}"
            )
        return ALLOW

    def _write_boundary(self, actor: Actor, church: Church) -> AccessDecision:
        if actor.role == ActorRole.PARISH_SECRETARY:
            return self._parish_boundary(actor, church.diocese, church.id)
        return self._diocese_boundary(actor, church.diocese)

    def _read(self, actor: Actor, church: Church | None) -> AccessDecision:
        if church is None:
            raise ValueError("church is required for read checks")
        if actor.role == ActorRole.MUSEUM_RESEARCHER:
            return ALLOW
        if actor.role == ActorRole.PUBLIC:
            return AccessDecision.unauthorized("unpublished churches are not public")
        return self._write_boundary(actor, church)

    def _create(self, actor: Actor, diocese: str | None, parish: str | None) -> AccessDecision:
        if diocese is None or parish is None:
            raise ValueError("diocese and parish are required for create checks")
        if actor.role == ActorRole.PARISH_SECRETARY:
            return self._parish_boundary(actor, diocese, parish)
        return self._diocese_boundary(actor, diocese)

    def _update(
        self,
        actor: Actor,
        church: Church | None,
        fields: Iterable[str] | None,
    ) -> AccessDecision:
        if church is None:
            raise ValueError("church is required for update checks")
        requested = set(fields or ())
        unknown = requested - EDITABLE_FIELDS - PROTECTED_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not an editable church field")

        decision = self._write_boundary(actor, church)
        if not decision.allowed:
            return decision

        protected = requested & PROTECTED_FIELDS
        if protected:
            return AccessDecision.forbidden(
                f"field(s) {', '.join(sorted(protected))} cannot be changed by a profile edit"
            )

        if actor.role == ActorRole.MUSEUM_RESEARCHER:
            outside = requested - HERITAGE_VALIDATION_FIELDS
            if outside:
                return AccessDecision.forbidden(
                    "museum researchers may only edit heritage validation fields, "
                    f"not {', '.join(sorted(outside))}"
                )
        return ALLOW

    def _transition(
        self,
        actor: Actor,
        church: Church | None,
        edge: Edge | None,
    ) -> AccessDecision:
        if church is None or edge is None:
            raise ValueError("church and edge are required for transition checks")
        if actor.role not in edge.allowed_roles:
            return AccessDecision.unauthorized(
                f"role {actor.role.value} may not {edge.action} "
                f"({edge.from_status.value} -> {edge.to_status.value})"
            )
        return self._write_boundary(actor, church)

    def _manage_actor(
        self,
        actor: Actor,
        action: GateAction,
        target: Actor | None,
    ) -> AccessDecision:
        if target is None:
            raise ValueError("target actor is required for actor management checks")
        if target.role != ActorRole.PARISH_SECRETARY:
            return AccessDecision.unauthorized(
                f"{action.value} is limited to parish_secretary actors"
            )
        if target.diocese is None:
            return AccessDecision.forbidden("target actor has no diocese")
        return self._diocese_boundary(actor, target.diocese)

    def _read_actor(self, actor: Actor, target: Actor | None) -> AccessDecision:
        if target is None:
            raise ValueError("target actor is required for actor read checks")
        if target.diocese is None:
            return AccessDecision.forbidden("target actor has no diocese")
        return self._diocese_boundary(actor, target.diocese)
