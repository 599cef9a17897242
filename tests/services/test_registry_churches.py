"""
Registry facade tests for church records.

Covers:
- Creation: parish scope, duplicates, ledgering of rejected attempts
- Reads and listing under the gate
- Profile edits: rescoring, field rules, optimistic concurrency
- Every mutating call from another diocese is Forbidden
- Classification preview and config-driven classifier
"""

from __future__ import annotations

import pytest

from church_config.schema import (
    DatabaseConfig,
    HeritageConfig,
    HeritageWeights,
    LoggingConfig,
    RegistryConfig,
)
from church_kernel.db.engine import session_scope
from church_kernel.domain.church import (
    Actor,
    ActorRole,
    AuditAction,
    ChurchProfile,
    ChurchQuery,
    ChurchStatus,
    Confidence,
    HeritageClassification,
    TransitionOutcome,
)
from church_kernel.exceptions import (
    ChurchAlreadyExistsError,
    ChurchNotFoundError,
    ConflictError,
    ForbiddenError,
    UnauthorizedError,
    ValidationError,
)
from church_kernel.services.audit_log import AuditLogService
from church_services.registry import ChurchRegistry
from tests.conftest import OTHER_DIOCESE


def ledger(session_factory, church_id):
    with session_scope(session_factory) as session:
        return AuditLogService(session).get_trail(church_id)


class TestCreateChurch:

    def test_secretary_creates_own_parish_church(self, registry, secretary, heritage_draft, captured_logs):
        church = registry.create_church(secretary, heritage_draft("Baclayon"))

        assert church.id == "baclayon"
        assert church.status == ChurchStatus.PENDING
        assert church.version == 1
        assert church.heritage_score == 120
        assert church.heritage_confidence == Confidence.HIGH
        assert church.created_by_id == secretary.uid

        trail = registry.get_audit_trail(secretary, church.id)
        assert len(trail) == 1
        assert trail[0].action == AuditAction.CHURCH_CREATED
        assert trail[0].to_status == ChurchStatus.PENDING
        assert trail[0].version_after == 1
        assert trail[0].prev_hash is None

        created = [r for r in captured_logs() if r["message"] == "church_created"]
        assert created[0]["heritage_score"] == 120

    def test_second_church_for_same_parish_fails_without_mutating_first(
        self, registry, session_factory, secretary, make_draft,
    ):
        first = registry.create_church(secretary, make_draft(name="Original Name"))

        with pytest.raises(ChurchAlreadyExistsError):
            registry.create_church(secretary, make_draft(name="Duplicate", founding_year=1700))

        stored = registry.get_church(secretary, first.id)
        assert stored == first
        trail = ledger(session_factory, first.id)
        assert [r.outcome for r in trail] == [TransitionOutcome.APPLIED, TransitionOutcome.REJECTED]
        assert trail[1].error_code == "ALREADY_EXISTS"
        assert trail[1].version_before == 1

    def test_secretary_cannot_create_other_parish(self, registry, session_factory, secretary, make_draft):
        with pytest.raises(ForbiddenError):
            registry.create_church(secretary, make_draft("loboc"))

        trail = ledger(session_factory, "loboc")
        assert len(trail) == 1
        assert trail[0].error_code == "FORBIDDEN"

    def test_museum_cannot_create(self, registry, museum, make_draft):
        with pytest.raises(UnauthorizedError):
            registry.create_church(museum, make_draft())

    def test_malformed_draft_is_not_ledgered(self, registry, session_factory, chancery, make_draft):
        with pytest.raises(ValidationError):
            registry.create_church(chancery, make_draft(founding_year=-3))
        assert ledger(session_factory, "baclayon") == []


class TestReads:

    def test_public_reads_only_approved(self, registry, create_church, chancery, public):
        church = create_church()
        with pytest.raises(UnauthorizedError):
            registry.get_church(public, church.id)

        registry.request_transition(chancery, church.id, 1, ChurchStatus.APPROVED)
        assert registry.get_church(public, church.id).status == ChurchStatus.APPROVED

    def test_missing_church(self, registry, chancery):
        with pytest.raises(ChurchNotFoundError):
            registry.get_church(chancery, "nowhere")

    def test_list_filters_by_readability_and_query(
        self, registry, create_church, make_draft, heritage_draft, chancery, other_chancery, public, museum,
    ):
        create_church(make_draft("baclayon"))
        create_church(heritage_draft("loboc"))
        create_church(make_draft("inabanga", OTHER_DIOCESE), actor=other_chancery)
        registry.request_transition(chancery, "baclayon", 1, ChurchStatus.APPROVED)

        assert [c.id for c in registry.list_churches(public)] == ["baclayon"]
        assert [c.id for c in registry.list_churches(chancery)] == ["baclayon", "loboc"]
        assert len(registry.list_churches(museum)) == 3
        assert [c.id for c in registry.list_churches(museum, ChurchQuery(heritage_only=True))] == ["loboc"]
        assert [
            c.id for c in registry.list_churches(museum, ChurchQuery(diocese=OTHER_DIOCESE))
        ] == ["inabanga"]
        assert [
            c.id for c in registry.list_churches(chancery, ChurchQuery(status=ChurchStatus.PENDING))
        ] == ["loboc"]

    def test_limit_counts_only_readable_churches(
        self, registry, create_church, make_draft, chancery, public, secretary,
    ):
        # Unreadable rows sort first and must not use up the page.
        create_church(make_draft("aaa"))
        create_church(make_draft("baclayon"))
        create_church(make_draft("zzz"))
        registry.request_transition(chancery, "zzz", 1, ChurchStatus.APPROVED)

        page = ChurchQuery(limit=1)
        assert [c.id for c in registry.list_churches(public, page)] == ["zzz"]
        assert [c.id for c in registry.list_churches(secretary, page)] == ["baclayon"]
        assert [c.id for c in registry.list_churches(chancery, page)] == ["aaa"]
        assert [c.id for c in registry.list_churches(secretary, ChurchQuery(limit=5))] == [
            "baclayon", "zzz",
        ]

    def test_unstored_secretary_matches_own_parish_case_insensitively(
        self, registry, create_church, make_draft,
    ):
        church = create_church(make_draft("p1"))
        caller = Actor(
            uid="walk-in", role=ActorRole.PARISH_SECRETARY, diocese="Tagbilaran", parish="P1",
        )
        assert registry.get_church(caller, church.id) == church
        updated = registry.update_church_profile(caller, church.id, 1, {"description": "bell tower"})
        assert updated.version == 2

    def test_audit_trail_scope(self, registry, create_church, public, other_chancery, museum):
        church = create_church()
        with pytest.raises(UnauthorizedError):
            registry.get_audit_trail(public, church.id)
        with pytest.raises(ForbiddenError):
            registry.get_audit_trail(other_chancery, church.id)
        assert len(registry.get_audit_trail(museum, church.id)) == 1


class TestProfileEdits:

    def test_edit_rescores_and_bumps_version(self, registry, create_church, chancery):
        church = create_church()
        assert church.heritage_score == 0

        updated = registry.update_church_profile(
            chancery, church.id, 1, {"founding_year": 1727, "keywords": ["Coral Stone"]},
        )

        assert updated.version == 2
        assert updated.founding_year == 1727
        assert updated.keywords == ("coral stone",)
        assert updated.heritage_score == 70
        assert updated.is_heritage
        trail = registry.get_audit_trail(chancery, church.id)
        assert trail[-1].action == AuditAction.PROFILE_UPDATED
        assert trail[-1].from_status == trail[-1].to_status == ChurchStatus.PENDING
        assert trail[-1].notes == "updated: founding_year, keywords"
        assert trail[-1].heritage_score_at_transition == 70

    def test_rescoring_changes_workflow_routing(self, registry, create_church, chancery):
        church = create_church()
        registry.update_church_profile(chancery, church.id, 1, {"classification": "NCT"})
        result = registry.request_transition(chancery, church.id, 2, ChurchStatus.APPROVED)
        assert result.error_code == "GUARD_FAILED"

    def test_museum_edits_heritage_fields_only(self, registry, session_factory, create_church, museum):
        church = create_church()
        updated = registry.update_church_profile(
            museum, church.id, 1,
            {"classification": HeritageClassification.ICP, "heritage_notes": "Validated on site"},
        )
        assert updated.classification == HeritageClassification.ICP

        with pytest.raises(ForbiddenError):
            registry.update_church_profile(museum, church.id, 2, {"name": "Renamed"})
        assert ledger(session_factory, church.id)[-1].error_code == "FORBIDDEN"

    @pytest.mark.parametrize("field,value", [("diocese", OTHER_DIOCESE), ("status", "approved")])
    def test_protected_fields_forbidden(self, registry, create_church, secretary, field, value):
        church = create_church()
        with pytest.raises(ForbiddenError):
            registry.update_church_profile(secretary, church.id, 1, {field: value})
        stored = registry.get_church(secretary, church.id)
        assert stored.diocese == church.diocese
        assert stored.status == ChurchStatus.PENDING
        assert stored.version == 1

    def test_unknown_field_is_validation_error(self, registry, session_factory, create_church, chancery):
        church = create_church()
        with pytest.raises(ValidationError):
            registry.update_church_profile(chancery, church.id, 1, {"bell_count": 4})
        assert len(ledger(session_factory, church.id)) == 1

    def test_stale_version_is_conflict(self, registry, session_factory, create_church, chancery, secretary):
        church = create_church()
        registry.update_church_profile(secretary, church.id, 1, {"description": "new roof"})

        with pytest.raises(ConflictError) as exc_info:
            registry.update_church_profile(chancery, church.id, 1, {"name": "Stale Write"})

        assert exc_info.value.retryable
        assert exc_info.value.actual_version == 2
        assert registry.get_church(chancery, church.id).name == church.name
        assert ledger(session_factory, church.id)[-1].error_code == "CONFLICT"

    def test_missing_church_is_ledgered(self, registry, session_factory, chancery):
        with pytest.raises(ChurchNotFoundError):
            registry.update_church_profile(chancery, "ghost", 1, {"name": "Ghost"})
        assert ledger(session_factory, "ghost")[0].error_code == "NOT_FOUND"


class TestCrossDioceseWrites:
    """Every mutating call from another diocese is Forbidden, chancery included."""

    def test_create(self, registry, other_chancery, make_draft):
        with pytest.raises(ForbiddenError):
            registry.create_church(other_chancery, make_draft("dauis"))

    def test_profile_edit(self, registry, create_church, other_chancery):
        church = create_church()
        with pytest.raises(ForbiddenError):
            registry.update_church_profile(other_chancery, church.id, 1, {"name": "Taken Over"})

    def test_transition(self, registry, create_church, other_chancery):
        church = create_church()
        result = registry.request_transition(other_chancery, church.id, 1, ChurchStatus.APPROVED)
        assert result.error_code == "FORBIDDEN"


class TestClassificationPreview:

    def test_preview_matches_stored_score(self, registry, create_church, heritage_draft):
        draft = heritage_draft()
        preview = registry.classify(draft.profile())
        church = create_church(draft)
        assert preview.score == church.heritage_score

    def test_config_drives_classifier(self, session_factory, deterministic_clock):
        config = RegistryConfig(
            database=DatabaseConfig(),
            logging=LoggingConfig(),
            heritage=HeritageConfig(weights=HeritageWeights(heritage_keyword=60)),
        )
        registry = ChurchRegistry(session_factory, config=config, clock=deterministic_clock)
        result = registry.classify(ChurchProfile(keywords=("heritage",)))
        assert result.score == 60
        assert result.confidence == Confidence.MEDIUM
