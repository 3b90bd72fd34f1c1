"""Event bus utilities for git worktree lifecycle notifications."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

WORKTREE_CREATED = "worktree.created"
WORKTREE_REMOVED = "worktree.removed"
ALL_EVENTS = "*"


@dataclass(slots=True)
class WorktreeEvent:
    """Structured event emitted for worktree lifecycle changes."""

    name: str
    payload: dict[str, Any]
    timestamp: float


Listener = Callable[[WorktreeEvent], Any]


class EventSink(Protocol):
    """Receiver of lifecycle events; injected into the worktree manager."""

    def emit(self, name: str, payload: dict[str, Any]) -> WorktreeEvent: ...


class WorktreeEventBus:
    """
    Lightweight in-process pub/sub bus for worktree events.

    Delivery is synchronous, in subscription order, on the emitting thread.
    Subscribers to ``"*"`` receive every event after the named subscribers.
    A listener that raises is logged and skipped; the others still run.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = Lock()

    def on(self, name: str, listener: Listener) -> Callable[[], None]:
        """Subscribe ``listener`` to ``name``; return a callable that unsubscribes it."""
        with self._lock:
            self._listeners.setdefault(name, []).append(listener)
        return lambda: self.off(name, listener)

    def off(self, name: str, listener: Listener) -> None:
        """Remove ``listener`` from ``name``; unknown listeners are ignored."""
        with self._lock:
            listeners = self._listeners.get(name)
            if not listeners:
                return
            self._listeners[name] = [item for item in listeners if item is not listener]

    def listener_count(self, name: str | None = None) -> int:
        with self._lock:
            if name is not None:
                return len(self._listeners.get(name, ()))
            return sum(len(items) for items in self._listeners.values())

    def emit(self, name: str, payload: dict[str, Any]) -> WorktreeEvent:
        """Broadcast an event to all subscribers and return it."""
        event = WorktreeEvent(name=name, payload=dict(payload), timestamp=time.time())
        with self._lock:
            targets = list(self._listeners.get(name, ()))
            if name != ALL_EVENTS:
                targets.extend(self._listeners.get(ALL_EVENTS, ()))
        for listener in targets:
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - one listener must not starve the rest
                logger.exception(f"Worktree event listener failed for {name}")
        return event
