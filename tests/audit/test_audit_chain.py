"""
Audit ledger integrity.

Every church carries its own hash chain.  Records are immutable through
the ORM and any out-of-band edit is caught by chain validation.
"""

import pytest
from sqlalchemy import select, text

from church_kernel.db.engine import session_scope
from church_kernel.domain.church import ChurchStatus
from church_kernel.exceptions import AuditChainBrokenError, ImmutabilityViolationError
from church_kernel.models.church import ChurchModel
from church_kernel.models.transition_record import TransitionRecordModel
from church_kernel.services.audit_log import AuditLogService, record_payload
from church_kernel.utils.hashing import hash_audit_record, hash_payload


@pytest.fixture
def busy_church(registry, create_church, chancery, secretary, heritage_draft):
    """A heritage church with applied and rejected records on its ledger."""
    church = create_church(heritage_draft())
    registry.request_transition(secretary, church.id, 1, ChurchStatus.APPROVED)
    registry.request_transition(chancery, church.id, 1, ChurchStatus.HERITAGE_REVIEW)
    registry.update_church_profile(chancery, church.id, 2, {"description": "coral stone facade"})
    return church


def tamper(session_factory, church_id: str, seq: int, assignment: str) -> None:
    """Edit a ledger row behind the ORM's back."""
    with session_scope(session_factory) as session:
        session.execute(
            text(f"UPDATE transition_records SET {assignment} WHERE church_id = :c AND seq = :s"),
            {"c": church_id, "s": seq},
        )


class TestChainStructure:

    def test_sequence_and_links(self, session_factory, busy_church):
        with session_scope(session_factory) as session:
            trail = AuditLogService(session).get_trail(busy_church.id)

        assert [r.seq for r in trail] == [1, 2, 3, 4]
        assert trail[0].prev_hash is None
        for prev, record in zip(trail, trail[1:]):
            assert record.prev_hash == prev.hash

    def test_hashes_recompute(self, session_factory, busy_church):
        with session_scope(session_factory) as session:
            models = session.execute(
                select(TransitionRecordModel)
                .where(TransitionRecordModel.church_id == busy_church.id)
                .order_by(TransitionRecordModel.seq)
            ).scalars().all()
            for model in models:
                assert model.payload_hash == hash_payload(record_payload(model))
                assert model.hash == hash_audit_record(
                    church_id=model.church_id,
                    action=model.action,
                    payload_hash=model.payload_hash,
                    prev_hash=model.prev_hash,
                )

    def test_chains_are_independent(self, session_factory, create_church, make_draft, busy_church):
        other = create_church(make_draft("loboc"))
        with session_scope(session_factory) as session:
            service = AuditLogService(session)
            first = service.get_trail(other.id)[0]
            assert first.seq == 1
            assert first.prev_hash is None
            assert service.count(busy_church.id) == 4
            assert service.last_record(busy_church.id).seq == 4
            assert service.get_record(first.id) == first

    def test_rejections_are_chained(self, session_factory, busy_church):
        with session_scope(session_factory) as session:
            rejected = AuditLogService(session).get_trail(busy_church.id)[1]
        assert rejected.error_code == "UNAUTHORIZED"
        assert rejected.version_before == 1
        assert rejected.version_after is None


class TestValidation:

    def test_untouched_chain_validates(self, registry, chancery, busy_church):
        assert registry.verify_audit_chain(chancery, busy_church.id)

    def test_validate_all_chains(self, session_factory, create_church, make_draft, busy_church):
        create_church(make_draft("loboc"))
        with session_scope(session_factory) as session:
            assert AuditLogService(session).validate_all_chains() == 2

    def test_edited_notes_are_detected(self, registry, session_factory, chancery, busy_church):
        tamper(session_factory, busy_church.id, 3, "notes = 'nothing to see'")
        with pytest.raises(AuditChainBrokenError) as exc_info:
            registry.verify_audit_chain(chancery, busy_church.id)
        assert exc_info.value.code == "AUDIT_CHAIN_BROKEN"

    def test_rewritten_hash_breaks_next_link(self, session_factory, busy_church):
        tamper(session_factory, busy_church.id, 2, "hash = 'f' || substr(hash, 2)")
        with session_scope(session_factory) as session:
            with pytest.raises(AuditChainBrokenError):
                AuditLogService(session).validate_chain(busy_church.id)

    def test_gap_in_sequence_is_detected(self, session_factory, busy_church):
        tamper(session_factory, busy_church.id, 4, "seq = 9")
        with session_scope(session_factory) as session:
            with pytest.raises(AuditChainBrokenError):
                AuditLogService(session).validate_chain(busy_church.id)


class TestImmutability:

    def test_record_update_blocked(self, session_factory, busy_church):
        session = session_factory()
        try:
            record = session.execute(
                select(TransitionRecordModel).where(TransitionRecordModel.church_id == busy_church.id)
            ).scalars().first()
            record.notes = "rewritten"
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
        finally:
            session.rollback()
            session.close()

    def test_record_delete_blocked(self, session_factory, busy_church):
        session = session_factory()
        try:
            record = session.execute(
                select(TransitionRecordModel).where(TransitionRecordModel.church_id == busy_church.id)
            ).scalars().first()
            session.delete(record)
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
        finally:
            session.rollback()
            session.close()

    def test_church_delete_blocked(self, session_factory, busy_church):
        session = session_factory()
        try:
            session.delete(session.get(ChurchModel, busy_church.id))
            with pytest.raises(ImmutabilityViolationError) as exc_info:
                session.flush()
            assert exc_info.value.entity_type == "Church"
        finally:
            session.rollback()
            session.close()

        with session_scope(session_factory) as check:
            assert check.get(ChurchModel, busy_church.id) is not None
