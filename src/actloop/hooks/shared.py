"""Shared hook state — counters and trails that outlive a single run.

Rate-limit counters, performance timings, and the audit trail are meant to
be seen by every run that shares a ``SharedHookState``. The default
instance is process-wide, so concurrent runs contend for the same rate
budget. Pass ``SharedHookState.scoped("tenant-a")`` (or a fresh instance)
to isolate a tenant.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

AUDIT_CAPACITY = 1000
DURATION_SAMPLES = 100  # recent timings kept per key


@dataclass
class RateWindow:
    count: int
    reset_at: float


class SharedHookState:
    """Thread-safe store for hook bookkeeping.

    Args:
        namespace: Label for logs and for ``scoped`` lookups.
        audit_capacity: Max audit entries kept (oldest dropped first).
        clock: Monotonic seconds source, injectable for tests.
    """

    _scopes: ClassVar[dict[str, SharedHookState]] = {}
    _scopes_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        namespace: str = "default",
        audit_capacity: int = AUDIT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.namespace = namespace
        self.clock = clock
        self._lock = threading.Lock()
        self._rate: dict[str, RateWindow] = {}
        self._durations: dict[str, deque[float]] = {}
        self._totals: dict[str, tuple[int, float]] = {}  # key -> (calls, total ms)
        self._audit: deque[dict[str, Any]] = deque(maxlen=audit_capacity)

    @classmethod
    def scoped(cls, namespace: str) -> SharedHookState:
        """Return the shared instance for ``namespace``, creating it once."""
        with cls._scopes_lock:
            state = cls._scopes.get(namespace)
            if state is None:
                state = cls(namespace=namespace)
                cls._scopes[namespace] = state
            return state

    # --- Rate limiting ---

    def hit(self, key: str, window: float) -> int:
        """Count one attempt for ``key`` and return the count in the current window.

        The window starts at the first attempt and resets lazily once it
        has elapsed.
        """
        now = self.clock()
        with self._lock:
            counter = self._rate.get(key)
            if counter is None or counter.reset_at < now:
                counter = RateWindow(count=0, reset_at=now + window)
                self._rate[key] = counter
            counter.count += 1
            return counter.count

    def rate_count(self, key: str) -> int:
        with self._lock:
            counter = self._rate.get(key)
            return counter.count if counter else 0

    # --- Performance ---

    def record_duration(self, key: str, millis: float) -> tuple[int, float]:
        """Store a duration and return ``(calls, running_average_ms)``.

        Only the latest ``DURATION_SAMPLES`` timings are kept per key; the
        average covers every call.
        """
        with self._lock:
            samples = self._durations.get(key)
            if samples is None:
                samples = self._durations[key] = deque(maxlen=DURATION_SAMPLES)
            samples.append(millis)
            calls, total = self._totals.get(key, (0, 0.0))
            calls += 1
            total += millis
            self._totals[key] = (calls, total)
            return calls, total / calls

    def performance_metrics(self) -> dict[str, list[float]]:
        with self._lock:
            return {k: list(v) for k, v in self._durations.items()}

    # --- Audit ---

    def append_audit(self, entry: dict[str, Any]) -> None:
        with self._lock:
            self._audit.append(entry)

    def audit_trail(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._audit)

    def reset(self) -> None:
        """Forget all counters, timings, and audit entries."""
        with self._lock:
            self._rate.clear()
            self._durations.clear()
            self._totals.clear()
            self._audit.clear()


def default_shared_state() -> SharedHookState:
    """The process-wide instance used when no state is injected."""
    return SharedHookState.scoped("default")
