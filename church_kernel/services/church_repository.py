"""
ChurchRepository -- versioned get / compare-and-swap persistence for churches.

Responsibility:
    The persistence collaborator of the workflow engine.  Reads Church
    snapshots with their version token and writes status or profile
    changes only when the caller's expected version still matches.

Architecture position:
    Kernel > Services -- imperative shell.  ``ChurchRepository`` is the
    structural interface; ``SqlChurchRepository`` is the SQLAlchemy
    implementation.

Invariants enforced:
    - Every write is ``UPDATE churches ... WHERE id = :id AND version =
      :expected`` and bumps ``version`` by one.  Zero rows updated means
      the caller's version is stale.
    - ``diocese`` and ``id`` are never part of an UPDATE.
    - Exactly one Church per parish: the primary key plus a savepointed
      INSERT turn a duplicate into ChurchAlreadyExistsError without
      poisoning the caller's transaction.

The audit record that accompanies a status change is appended by the
caller in the same session, so the CAS and the ledger row commit or roll
back together.
"""

from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from church_kernel.domain.church import (
    Church,
    ChurchDraft,
    ChurchQuery,
    ChurchStatus,
    HeritageAssessment,
)
from church_kernel.exceptions import ChurchAlreadyExistsError
from church_kernel.logging_config import get_logger
from church_kernel.models.church import ChurchModel

logger = get_logger("services.church_repository")

# Rows fetched per round trip while filtering a listing.
_LIST_BATCH = 200


class CasOutcome(str, Enum):
    APPLIED = "applied"
    CONFLICT = "conflict"


class ChurchRepository(Protocol):
    """Structural interface of the persistence collaborator."""

    def get(self, church_id: str) -> Church | None: ...

    def create(
        self,
        draft: ChurchDraft,
        assessment: HeritageAssessment,
        created_by_id: str,
        now: datetime,
    ) -> Church: ...

    def compare_and_swap(
        self,
        church_id: str,
        expected_version: int,
        new_status: ChurchStatus,
        now: datetime,
    ) -> CasOutcome: ...

    def update_profile(
        self,
        church_id: str,
        expected_version: int,
        changes: dict[str, Any],
        assessment: HeritageAssessment,
        now: datetime,
    ) -> CasOutcome: ...

    def list_churches(
        self,
        query: ChurchQuery,
        visible: Callable[[Church], bool] | None = None,
    ) -> list[Church]: ...


def _column_value(field: str, value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if field == "keywords":
        return list(value)
    return value


class SqlChurchRepository:
    """
    SQLAlchemy implementation of ChurchRepository.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT authorize; the gate runs before any call here.
    """

    def __init__(self, session: Session):
        self._session = session

    def get(self, church_id: str) -> Church | None:
        """Fresh read of a church (bypasses the identity map)."""
        model = self._session.execute(
            select(ChurchModel)
            .where(ChurchModel.id == church_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def exists(self, church_id: str) -> bool:
        return self._session.execute(
            select(ChurchModel.id).where(ChurchModel.id == church_id)
        ).scalar_one_or_none() is not None

    def create(
        self,
        draft: ChurchDraft,
        assessment: HeritageAssessment,
        created_by_id: str,
        now: datetime,
    ) -> Church:
        """
        Insert a new pending church at version 1.

        Raises:
            ChurchAlreadyExistsError: A church already exists for the parish.
        """
        if self.exists(draft.id):
            raise ChurchAlreadyExistsError(draft.id)

        model = ChurchModel(
            id=draft.id,
            name=draft.name,
            diocese=draft.diocese,
            status=ChurchStatus.PENDING.value,
            version=1,
            classification=draft.classification.value,
            founding_year=draft.founding_year,
            architectural_style=draft.architectural_style,
            description=draft.description,
            keywords=list(draft.keywords),
            heritage_notes=draft.heritage_notes,
            heritage_score=assessment.score,
            heritage_confidence=assessment.confidence.value,
            is_heritage=assessment.is_heritage,
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
        )

        savepoint = self._session.begin_nested()
        try:
            self._session.add(model)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info("church_create_race_lost", extra={"church_id": draft.id})
            raise ChurchAlreadyExistsError(draft.id) from None

        return model.to_dto()

    def _swap(self, church_id: str, expected_version: int, values: dict[str, Any]) -> CasOutcome:
        result = self._session.execute(
            update(ChurchModel)
            .where(ChurchModel.id == church_id)
            .where(ChurchModel.version == expected_version)
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                "church_cas_conflict",
                extra={"church_id": church_id, "expected_version": expected_version},
            )
            return CasOutcome.CONFLICT
        return CasOutcome.APPLIED

    def compare_and_swap(
        self,
        church_id: str,
        expected_version: int,
        new_status: ChurchStatus,
        now: datetime,
    ) -> CasOutcome:
        """Set a new status iff the stored version equals ``expected_version``."""
        return self._swap(
            church_id,
            expected_version,
            {"status": new_status.value, "updated_at": now},
        )

    def update_profile(
        self,
        church_id: str,
        expected_version: int,
        changes: dict[str, Any],
        assessment: HeritageAssessment,
        now: datetime,
    ) -> CasOutcome:
        """Apply validated profile changes and refresh the cached classification."""
        values = {field: _column_value(field, v) for field, v in changes.items()}
        values.update(
            heritage_score=assessment.score,
            heritage_confidence=assessment.confidence.value,
            is_heritage=assessment.is_heritage,
            updated_at=now,
        )
        return self._swap(church_id, expected_version, values)

    def list_churches(
        self,
        query: ChurchQuery,
        visible: Callable[[Church], bool] | None = None,
    ) -> list[Church]:
        """
        Churches matching ``query`` in (diocese, id) order.

        ``visible`` is applied before ``query.limit``, so rows it drops never
        use up the page.
        """
        stmt = select(ChurchModel).order_by(ChurchModel.diocese, ChurchModel.id)
        if query.diocese is not None:
            stmt = stmt.where(ChurchModel.diocese == query.diocese)
        if query.status is not None:
            stmt = stmt.where(ChurchModel.status == query.status.value)
        if query.heritage_only:
            stmt = stmt.where(ChurchModel.is_heritage.is_(True))
        if visible is None:
            stmt = stmt.limit(query.limit)
            return [m.to_dto() for m in self._session.execute(stmt).scalars()]

        found: list[Church] = []
        if query.limit <= 0:
            return found
        rows = self._session.execute(stmt.execution_options(yield_per=_LIST_BATCH))
        try:
            for model in rows.scalars():
                church = model.to_dto()
                if visible(church):
                    found.append(church)
                    if len(found) >= query.limit:
                        break
        finally:
            rows.close()
        return found


def apply_changes(church: Church, changes: dict[str, Any]) -> Church:
    """In-memory preview of a profile edit (used to rescore before writing)."""
    return replace(church, **changes)
