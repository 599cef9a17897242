"""ORM models for the church kernel."""

from church_kernel.models.actor import ActorModel
from church_kernel.models.church import ChurchModel
from church_kernel.models.sequence_counter import SequenceCounter
from church_kernel.models.transition_record import TransitionRecordModel

__all__ = [
    "ActorModel",
    "ChurchModel",
    "SequenceCounter",
    "TransitionRecordModel",
]
