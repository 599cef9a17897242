"""
Module: church_kernel.models.actor
Responsibility: ORM persistence for Actor profiles (role, diocese, parish).
Architecture position: Kernel > Models.

Invariants enforced:
    - ``uid`` is unique (primary key).
    - A parish_secretary row always carries a parish (check constraint).
    - Actors are deactivated or soft-deleted, never removed.
"""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from church_kernel.db.base import TimestampedBase
from church_kernel.domain.church import Actor, ActorRole


class ActorModel(TimestampedBase):
    """Persistent user profile as seen by the authorization gate."""

    __tablename__ = "actors"

    __table_args__ = (
        CheckConstraint(
            "role IN ('chancery_office', 'museum_researcher', "
            "'parish_secretary', 'public')",
            name="ck_actors_valid_role",
        ),
        CheckConstraint(
            "role != 'parish_secretary' OR parish IS NOT NULL",
            name="ck_actors_secretary_has_parish",
        ),
        Index("idx_actor_diocese_role", "diocese", "role"),
    )

    uid: Mapped[str] = mapped_column(String(64), primary_key=True)

    role: Mapped[str] = mapped_column(String(30), nullable=False)

    diocese: Mapped[str | None] = mapped_column(String(64), nullable=True)

    parish: Mapped[str | None] = mapped_column(String(64), nullable=True)

    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Actor {self.uid} role={self.role} diocese={self.diocese}>"

    def to_dto(self) -> Actor:
        """Convert ORM model to frozen domain DTO."""
        return Actor(
            uid=self.uid,
            role=ActorRole(self.role),
            diocese=self.diocese,
            parish=self.parish,
            display_name=self.display_name,
            email=self.email,
            is_active=self.is_active,
            is_deleted=self.is_deleted,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: Actor, created_by_id: str | None, now) -> ActorModel:
        """Create ORM model from domain DTO."""
        return cls(
            uid=dto.uid,
            role=dto.role.value,
            diocese=dto.diocese,
            parish=dto.parish,
            display_name=dto.display_name,
            email=dto.email,
            is_active=dto.is_active,
            is_deleted=dto.is_deleted,
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
        )
