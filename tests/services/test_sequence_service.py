"""Tests for SequenceService: named, gap-free, monotonic counters."""

from church_kernel.db.engine import session_scope
from church_kernel.services.sequence_service import SequenceService, church_audit_sequence


def test_first_value_is_one(session_factory):
    with session_scope(session_factory) as session:
        service = SequenceService(session)
        assert service.current_value("demo") is None
        assert service.next_value("demo") == 1
        assert service.current_value("demo") == 1


def test_values_are_monotonic_across_transactions(session_factory):
    values = []
    for _ in range(3):
        with session_scope(session_factory) as session:
            values.append(SequenceService(session).next_value("demo"))
    assert values == [1, 2, 3]


def test_names_are_independent(session_factory):
    with session_scope(session_factory) as session:
        service = SequenceService(session)
        service.next_value(church_audit_sequence("baclayon"))
        service.next_value(church_audit_sequence("baclayon"))
        assert service.next_value(church_audit_sequence("loboc")) == 1
        assert service.current_value("church_audit:baclayon") == 2


def test_rollback_releases_value(session_factory):
    session = session_factory()
    try:
        SequenceService(session).next_value("demo")
    finally:
        session.rollback()
        session.close()

    with session_scope(session_factory) as session:
        assert SequenceService(session).next_value("demo") == 1
