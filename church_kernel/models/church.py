"""
Module: church_kernel.models.church
Responsibility: ORM persistence for Church records (one per parish).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects (for DTO conversion) only.

Invariants enforced:
    - Exactly one Church per parish: ``id`` is the parish identifier and
      the primary key.
    - ``diocese`` is written once at INSERT; the repository never includes
      it in an UPDATE.
    - ``version`` starts at 1 and is bumped by exactly one on every
      successful write (compare-and-swap in the repository).
    - Church rows are never deleted (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate id (translated to ChurchAlreadyExistsError
      by the repository).
    - ImmutabilityViolationError on DELETE.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from church_kernel.db.base import TimestampedBase
from church_kernel.domain.church import (
    Church,
    ChurchStatus,
    Confidence,
    HeritageClassification,
)


class ChurchModel(TimestampedBase):
    """
    Persistent Church row.

    Contract:
        ``status`` only changes through the workflow engine's
        compare-and-swap; profile edits go through the same CAS but never
        touch ``status`` or ``diocese``.
    """

    __tablename__ = "churches"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'heritage_review', 'approved', "
            "'rejected', 'needs_revision')",
            name="ck_churches_valid_status",
        ),
        CheckConstraint("version >= 1", name="ck_churches_version_positive"),
        Index("idx_church_diocese_status", "diocese", "status"),
    )

    # Parish identifier
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    diocese: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=ChurchStatus.PENDING.value,
    )

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    classification: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=HeritageClassification.NONE.value,
    )

    founding_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    architectural_style: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    keywords: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    heritage_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Cached classifier output, refreshed on create and every profile edit
    heritage_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    heritage_confidence: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=Confidence.LOW.value,
    )

    is_heritage: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Church {self.id} ({self.diocese}) status={self.status} v{self.version}>"

    def to_dto(self) -> Church:
        """Convert ORM model to frozen domain DTO."""
        return Church(
            id=self.id,
            name=self.name,
            diocese=self.diocese,
            status=ChurchStatus(self.status),
            version=self.version,
            classification=HeritageClassification(self.classification),
            founding_year=self.founding_year,
            architectural_style=self.architectural_style,
            description=self.description,
            keywords=tuple(self.keywords or ()),
            heritage_notes=self.heritage_notes,
            heritage_score=self.heritage_score,
            heritage_confidence=Confidence(self.heritage_confidence),
            is_heritage=self.is_heritage,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
