"""
church_services.notifications -- TransitionApplied event dispatch.

The notification collaborator consumes one ``TransitionApplied`` event
after every committed transition.  Delivery, retry and fan-out (email,
push, dashboards) are its own concern; the registry only hands events
over once the transaction has committed.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from church_kernel.domain.church import TransitionApplied
from church_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


@runtime_checkable
class NotificationDispatcher(Protocol):
    def dispatch(self, event: TransitionApplied) -> None: ...


class LoggingDispatcher:
    """Default dispatcher: emits one structured log line per event."""

    def dispatch(self, event: TransitionApplied) -> None:
        logger.info(
            "transition_event_dispatched",
            extra={
                "church_id": event.church_id,
                "diocese": event.diocese,
                "from_status": event.from_status.value,
                "to_status": event.to_status.value,
                "actor_id": event.actor_id,
                "record_id": str(event.record_id) if event.record_id else None,
                "event_ts": event.timestamp.isoformat(),
            },
        )


class RecordingDispatcher:
    """Keeps every event in memory (in-process subscribers and tests)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[TransitionApplied] = []

    def dispatch(self, event: TransitionApplied) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[TransitionApplied]:
        with self._lock:
            return list(self._events)

    def for_church(self, church_id: str) -> list[TransitionApplied]:
        return [e for e in self.events if e.church_id == church_id]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class FanOutDispatcher:
    """Hands each event to several dispatchers in order."""

    def __init__(self, *dispatchers: NotificationDispatcher) -> None:
        self._dispatchers = dispatchers

    def dispatch(self, event: TransitionApplied) -> None:
        for dispatcher in self._dispatchers:
            dispatcher.dispatch(event)
