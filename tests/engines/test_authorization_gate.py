"""
Authorization gate tests -- pure policy, no database.

Covers:
- Evaluation order: inactive actor, role, then boundary
- Reads: approved churches public, otherwise per-role scope
- Profile edits: field-level rules, protected fields, unknown fields
- Transitions: role on edge, diocese and parish boundaries
- Actor provisioning and actor read scope
"""

from __future__ import annotations

import pytest

from church_engines.authorization import (
    HERITAGE_VALIDATION_FIELDS,
    AuthorizationGate,
    GateAction,
)
from church_kernel.domain.church import (
    ANONYMOUS,
    Actor,
    ActorRole,
    Church,
    ChurchStatus,
)
from church_kernel.domain.workflow import find_edge
from church_kernel.exceptions import ForbiddenError, UnauthorizedError, ValidationError

gate = AuthorizationGate()

CHANCERY = Actor(uid="chancery", role=ActorRole.CHANCERY_OFFICE, diocese="tagbilaran")
FOREIGN_CHANCERY = Actor(uid="chancery-2", role=ActorRole.CHANCERY_OFFICE, diocese="talibon")
MUSEUM = Actor(uid="museum", role=ActorRole.MUSEUM_RESEARCHER, diocese="tagbilaran")
FOREIGN_MUSEUM = Actor(uid="museum-2", role=ActorRole.MUSEUM_RESEARCHER, diocese="talibon")
SECRETARY = Actor(
    uid="sec", role=ActorRole.PARISH_SECRETARY, diocese="tagbilaran", parish="baclayon",
)
OTHER_SECRETARY = Actor(
    uid="sec-2", role=ActorRole.PARISH_SECRETARY, diocese="tagbilaran", parish="loboc",
)


def church(status: ChurchStatus = ChurchStatus.PENDING, church_id="baclayon", diocese="tagbilaran"):
    return Church(id=church_id, name="Baclayon", diocese=diocese, status=status, version=1)


class TestEvaluationOrder:

    def test_inactive_actor_is_unauthorized_even_for_public_reads(self):
        inactive = Actor(uid="x", role=ActorRole.CHANCERY_OFFICE, diocese="tagbilaran", is_active=False)
        decision = gate.evaluate(inactive, GateAction.READ_CHURCH, church=church(ChurchStatus.APPROVED))
        assert not decision.allowed
        assert decision.error_code == "UNAUTHORIZED"

    def test_deleted_actor_is_unauthorized(self):
        deleted = Actor(uid="x", role=ActorRole.CHANCERY_OFFICE, diocese="tagbilaran", is_deleted=True)
        decision = gate.evaluate(deleted, GateAction.READ_CHURCH, church=church())
        assert decision.error_code == "UNAUTHORIZED"

    def test_role_check_precedes_boundary_check(self):
        # public may not create anywhere: role failure, not a boundary failure
        decision = gate.evaluate(
            ANONYMOUS, GateAction.CREATE_CHURCH, diocese="talibon", parish="inabanga",
        )
        assert decision.error_code == "UNAUTHORIZED"

    def test_require_raises_typed_errors(self):
        with pytest.raises(UnauthorizedError):
            gate.require(ANONYMOUS, GateAction.READ_AUDIT, church=church())
        with pytest.raises(ForbiddenError):
            gate.require(FOREIGN_CHANCERY, GateAction.READ_CHURCH, church=church())

    def test_require_logs_denial(self, captured_logs):
        with pytest.raises(ForbiddenError):
            gate.require(FOREIGN_CHANCERY, GateAction.READ_CHURCH, church=church())
        denials = [r for r in captured_logs() if r["message"] == "access_denied"]
        assert denials[-1]["error_code"] == "FORBIDDEN"
        assert denials[-1]["action"] == "read_church"


class TestReads:

    @pytest.mark.parametrize(
        "actor", [ANONYMOUS, CHANCERY, FOREIGN_CHANCERY, MUSEUM, SECRETARY, OTHER_SECRETARY],
    )
    def test_approved_church_readable_by_everyone(self, actor):
        assert gate.can_read(actor, church(ChurchStatus.APPROVED))

    def test_public_cannot_read_pending(self):
        decision = gate.evaluate(ANONYMOUS, GateAction.READ_CHURCH, church=church())
        assert decision.error_code == "UNAUTHORIZED"

    def test_chancery_reads_own_diocese_only(self):
        assert gate.can_read(CHANCERY, church())
        decision = gate.evaluate(FOREIGN_CHANCERY, GateAction.READ_CHURCH, church=church())
        assert decision.error_code == "FORBIDDEN"

    def test_museum_reads_everywhere(self):
        assert gate.can_read(FOREIGN_MUSEUM, church(ChurchStatus.HERITAGE_REVIEW))

    def test_secretary_reads_own_parish_only(self):
        assert gate.can_read(SECRETARY, church())
        assert not gate.can_read(OTHER_SECRETARY, church())

    def test_filter_readable(self):
        churches = [
            church(ChurchStatus.APPROVED, "loboc"),
            church(ChurchStatus.PENDING, "dauis"),
            church(ChurchStatus.PENDING, "inabanga", diocese="talibon"),
        ]
        assert [c.id for c in gate.filter_readable(ANONYMOUS, churches)] == ["loboc"]
        assert [c.id for c in gate.filter_readable(CHANCERY, churches)] == ["loboc", "dauis"]
        assert len(gate.filter_readable(MUSEUM, churches)) == 3

    def test_audit_reads_follow_church_scope(self):
        assert gate.evaluate(MUSEUM, GateAction.READ_AUDIT, church=church()).allowed
        assert gate.evaluate(SECRETARY, GateAction.READ_AUDIT, church=church()).allowed
        assert not gate.evaluate(OTHER_SECRETARY, GateAction.READ_AUDIT, church=church()).allowed
        # approved status does not open the audit trail to the public
        public = gate.evaluate(ANONYMOUS, GateAction.READ_AUDIT, church=church(ChurchStatus.APPROVED))
        assert public.error_code == "UNAUTHORIZED"


class TestCreate:

    def test_secretary_creates_own_parish(self):
        assert gate.evaluate(
            SECRETARY, GateAction.CREATE_CHURCH, diocese="tagbilaran", parish="baclayon",
        ).allowed

    def test_secretary_cannot_create_other_parish(self):
        decision = gate.evaluate(
            SECRETARY, GateAction.CREATE_CHURCH, diocese="tagbilaran", parish="loboc",
        )
        assert decision.error_code == "FORBIDDEN"

    def test_chancery_cannot_create_in_other_diocese(self):
        decision = gate.evaluate(
            CHANCERY, GateAction.CREATE_CHURCH, diocese="talibon", parish="inabanga",
        )
        assert decision.error_code == "FORBIDDEN"

    def test_museum_cannot_create(self):
        decision = gate.evaluate(
            MUSEUM, GateAction.CREATE_CHURCH, diocese="tagbilaran", parish="loboc",
        )
        assert decision.error_code == "UNAUTHORIZED"


class TestProfileEdits:

    def test_chancery_edits_any_editable_field(self):
        decision = gate.evaluate(
            CHANCERY, GateAction.UPDATE_PROFILE, church=church(),
            fields=["name", "description", "founding_year", "keywords"],
        )
        assert decision.allowed

    @pytest.mark.parametrize("field", ["diocese", "id", "status", "version"])
    def test_protected_fields_are_forbidden(self, field):
        decision = gate.evaluate(CHANCERY, GateAction.UPDATE_PROFILE, church=church(), fields=[field])
        assert decision.error_code == "FORBIDDEN"

    def test_secretary_cannot_modify_diocese(self):
        decision = gate.evaluate(
            SECRETARY, GateAction.UPDATE_PROFILE, church=church(), fields=["diocese"],
        )
        assert decision.error_code == "FORBIDDEN"

    def test_unknown_field_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            gate.evaluate(CHANCERY, GateAction.UPDATE_PROFILE, church=church(), fields=["bell_count"])
        assert exc_info.value.field == "bell_count"

    def test_museum_limited_to_heritage_validation_fields(self):
        assert gate.evaluate(
            MUSEUM, GateAction.UPDATE_PROFILE, church=church(),
            fields=sorted(HERITAGE_VALIDATION_FIELDS),
        ).allowed
        decision = gate.evaluate(MUSEUM, GateAction.UPDATE_PROFILE, church=church(), fields=["name"])
        assert decision.error_code == "FORBIDDEN"

    def test_cross_diocese_edit_forbidden_for_chancery(self):
        decision = gate.evaluate(
            FOREIGN_CHANCERY, GateAction.UPDATE_PROFILE, church=church(), fields=["name"],
        )
        assert decision.error_code == "FORBIDDEN"


class TestTransitions:

    def test_role_not_on_edge_is_unauthorized(self):
        edge = find_edge(ChurchStatus.PENDING, ChurchStatus.APPROVED)
        decision = gate.evaluate(MUSEUM, GateAction.TRANSITION, church=church(), edge=edge)
        assert decision.error_code == "UNAUTHORIZED"

    def test_cross_diocese_transition_forbidden(self):
        edge = find_edge(ChurchStatus.PENDING, ChurchStatus.APPROVED)
        decision = gate.evaluate(FOREIGN_CHANCERY, GateAction.TRANSITION, church=church(), edge=edge)
        assert decision.error_code == "FORBIDDEN"

    def test_secretary_resubmits_own_parish_only(self):
        edge = find_edge(ChurchStatus.PENDING, ChurchStatus.PENDING)
        assert gate.evaluate(SECRETARY, GateAction.TRANSITION, church=church(), edge=edge).allowed
        decision = gate.evaluate(OTHER_SECRETARY, GateAction.TRANSITION, church=church(), edge=edge)
        assert decision.error_code == "FORBIDDEN"

    def test_caller_built_actor_matches_case_insensitively(self):
        edge = find_edge(ChurchStatus.PENDING, ChurchStatus.PENDING)
        shouting = Actor(
            uid="sec-p1", role=ActorRole.PARISH_SECRETARY, diocese="Tagbilaran", parish="P1",
        )
        own = church(church_id="p1")
        assert gate.evaluate(shouting, GateAction.TRANSITION, church=own, edge=edge).allowed
        assert gate.can_read(shouting, own)
        decision = gate.evaluate(shouting, GateAction.TRANSITION, church=church(), edge=edge)
        assert decision.error_code == "FORBIDDEN"

    def test_museum_heritage_approval_in_own_diocese(self):
        edge = find_edge(ChurchStatus.HERITAGE_REVIEW, ChurchStatus.APPROVED)
        target = church(ChurchStatus.HERITAGE_REVIEW)
        assert gate.evaluate(MUSEUM, GateAction.TRANSITION, church=target, edge=edge).allowed
        decision = gate.evaluate(FOREIGN_MUSEUM, GateAction.TRANSITION, church=target, edge=edge)
        assert decision.error_code == "FORBIDDEN"


class TestActorManagement:

    def test_chancery_provisions_secretary_in_own_diocese(self):
        assert gate.evaluate(CHANCERY, GateAction.PROVISION_ACTOR, target=OTHER_SECRETARY).allowed

    def test_chancery_cannot_provision_other_roles(self):
        decision = gate.evaluate(CHANCERY, GateAction.PROVISION_ACTOR, target=MUSEUM)
        assert decision.error_code == "UNAUTHORIZED"

    def test_chancery_cannot_provision_in_other_diocese(self):
        foreign = Actor(uid="s", role=ActorRole.PARISH_SECRETARY, diocese="talibon", parish="inabanga")
        decision = gate.evaluate(CHANCERY, GateAction.PROVISION_ACTOR, target=foreign)
        assert decision.error_code == "FORBIDDEN"

    @pytest.mark.parametrize("actor", [MUSEUM, SECRETARY, ANONYMOUS])
    def test_only_chancery_manages_actors(self, actor):
        for action in (GateAction.PROVISION_ACTOR, GateAction.DEACTIVATE_ACTOR):
            decision = gate.evaluate(actor, action, target=OTHER_SECRETARY)
            assert decision.error_code == "UNAUTHORIZED"


class TestActorReads:

    def test_actor_reads_itself_whatever_its_role(self):
        for actor in (SECRETARY, MUSEUM, ANONYMOUS):
            assert gate.evaluate(actor, GateAction.READ_ACTOR, target=actor).allowed

    def test_chancery_reads_any_role_in_own_diocese(self):
        for target in (SECRETARY, MUSEUM):
            assert gate.evaluate(CHANCERY, GateAction.READ_ACTOR, target=target).allowed

    def test_chancery_cannot_read_other_diocese(self):
        decision = gate.evaluate(FOREIGN_CHANCERY, GateAction.READ_ACTOR, target=SECRETARY)
        assert decision.error_code == "FORBIDDEN"

    def test_actor_without_diocese_is_forbidden(self):
        decision = gate.evaluate(CHANCERY, GateAction.READ_ACTOR, target=ANONYMOUS)
        assert decision.error_code == "FORBIDDEN"

    @pytest.mark.parametrize("actor", [MUSEUM, OTHER_SECRETARY, ANONYMOUS])
    def test_other_roles_cannot_read_actors(self, actor):
        decision = gate.evaluate(actor, GateAction.READ_ACTOR, target=SECRETARY)
        assert decision.error_code == "UNAUTHORIZED"

    def test_inactive_actor_cannot_read_itself(self):
        inactive = Actor(uid="x", role=ActorRole.CHANCERY_OFFICE, diocese="tagbilaran", is_active=False)
        decision = gate.evaluate(inactive, GateAction.READ_ACTOR, target=inactive)
        assert decision.error_code == "UNAUTHORIZED"
