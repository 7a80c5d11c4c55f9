# src/pipeline/events.py — v1
"""Workflow event emitter dispatching state changes to observers.

Observers are either objects with ``on_event(event)`` or plain callables.
A failing observer is logged and skipped.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Iterable, Protocol, Union, runtime_checkable

from genflow.pipeline.models import WorkflowEvent, WorkflowEventType

logger = logging.getLogger(__name__)


@runtime_checkable
class WorkflowObserver(Protocol):
    """Receives workflow events."""

    def on_event(self, event: WorkflowEvent) -> None: ...


Observer = Union[WorkflowObserver, Callable[[WorkflowEvent], None]]


class WorkflowEventEmitter:
    """Central event dispatcher with typed and global subscriptions."""

    def __init__(self) -> None:
        self._observers: dict[WorkflowEventType, list[Observer]] = defaultdict(list)
        self._global_observers: list[Observer] = []

    def subscribe(
        self,
        observer: Observer,
        event_types: Iterable[WorkflowEventType] | None = None,
    ) -> Callable[[], None]:
        """Subscribe to specific event types, or all events if None.

        Returns:
            A function that removes this subscription.
        """
        if event_types is None:
            self._global_observers.append(observer)
        else:
            for event_type in event_types:
                self._observers[event_type].append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        """Remove observer from all subscriptions."""
        if observer in self._global_observers:
            self._global_observers.remove(observer)
        for observers in self._observers.values():
            if observer in observers:
                observers.remove(observer)

    def clear(self) -> None:
        self._observers.clear()
        self._global_observers.clear()

    @property
    def observer_count(self) -> int:
        return len(self._global_observers) + sum(len(o) for o in self._observers.values())

    def emit(self, event: WorkflowEvent) -> None:
        """Dispatch event to global observers, then typed observers."""
        for observer in list(self._global_observers):
            self._safe_notify(observer, event)
        for observer in list(self._observers.get(event.type, [])):
            self._safe_notify(observer, event)

    def _safe_notify(self, observer: Observer, event: WorkflowEvent) -> None:
        try:
            if isinstance(observer, WorkflowObserver):
                observer.on_event(event)
            else:
                observer(event)
        except Exception as exc:
            logger.warning(
                "Observer %r failed on %s: %s", observer, event.type.value, exc
            )
