"""Wire protocol — decouples the loop from whoever is watching it.

Events flow from the orchestrator to subscribers (the CLI renderer, tests,
an embedding application). The loop never waits on a subscriber.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    RUN_BEGIN = "run_begin"
    RUN_END = "run_end"
    ITERATION_BEGIN = "iteration_begin"
    OBSERVE = "observe"
    THINK = "think"
    ACT = "act"
    LEARN = "learn"
    VETO = "veto"
    HOOK_MESSAGE = "hook_message"
    APPROVAL_REQUIRED = "approval_required"
    GOAL_ACHIEVED = "goal_achieved"
    ERROR = "error"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Async message bus: orchestrator -> subscribers.

    Single-producer, multi-consumer broadcast.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: WireEvent) -> None:
        """Send an event to all subscribers.

        Drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        for q in self._subscribers:
            q.put_nowait(event)

    def emit(self, type: EventType, **data: Any) -> None:
        self.send(WireEvent(type=type, data=data))

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Unsubscribe from events."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
