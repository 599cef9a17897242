"""
Module: church_kernel.models.sequence_counter
Responsibility: Named counter rows backing SequenceService.

Each row is one named sequence (e.g. ``church_audit:<church_id>``).
Row-level locking on this table is what makes per-church ledger
positions strictly monotonic under concurrency.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from church_kernel.db.base import Base


class SequenceCounter(Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(120), primary_key=True)

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
