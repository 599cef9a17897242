"""Kernel services: persistence collaborators used inside a caller's transaction."""

from church_kernel.services.actor_service import ActorService
from church_kernel.services.audit_log import AuditLogService
from church_kernel.services.church_repository import (
    CasOutcome,
    ChurchRepository,
    SqlChurchRepository,
)
from church_kernel.services.sequence_service import SequenceService

__all__ = [
    "ActorService",
    "AuditLogService",
    "CasOutcome",
    "ChurchRepository",
    "SqlChurchRepository",
    "SequenceService",
]
