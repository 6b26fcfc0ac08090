"""Bounded learning memory for a single run."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

from actloop.agent.state import MemoryRecord

MEMORY_CAPACITY = 100


class MemoryStore:
    """Append-only log of learning records, capped to the most recent N.

    Appending past capacity evicts the oldest record. Reads only ever need
    the tail, so there is no index or search.
    """

    def __init__(self, capacity: int = MEMORY_CAPACITY) -> None:
        if not 1 <= capacity <= MEMORY_CAPACITY:
            raise ValueError(
                f"Memory capacity must be between 1 and {MEMORY_CAPACITY}, got {capacity}"
            )
        self._records: deque[MemoryRecord] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._records.maxlen or 0

    def append(self, record: MemoryRecord) -> None:
        self._records.append(record)

    def recent(self, k: int = 5) -> list[MemoryRecord]:
        """Return the last ``k`` records, oldest first."""
        if k <= 0:
            return []
        return list(self._records)[-k:]

    def to_list(self) -> list[MemoryRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[MemoryRecord]:
        return iter(self._records)
