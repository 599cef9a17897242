"""
Church services -- transactional orchestration over the kernel and engines.

    ChurchRegistry      caller-facing facade, one transaction per call
    WorkflowEngine      request_transition / available_transitions
    notifications       TransitionApplied dispatchers
"""

from church_services.notifications import (
    FanOutDispatcher,
    LoggingDispatcher,
    NotificationDispatcher,
    RecordingDispatcher,
)
from church_services.registry import ChurchRegistry
from church_services.workflow_engine import (
    WorkflowEngine,
    guard_holds,
    transition_event,
)

__all__ = [
    "ChurchRegistry",
    "WorkflowEngine",
    "guard_holds",
    "transition_event",
    "NotificationDispatcher",
    "LoggingDispatcher",
    "RecordingDispatcher",
    "FanOutDispatcher",
]
