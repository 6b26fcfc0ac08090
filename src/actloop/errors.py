"""Error taxonomy for the agent loop.

Everything raised inside an iteration is recoverable unless it is critical:
the loop logs it, runs the ``error`` hook stage, and moves on. A critical
error ends the run immediately.
"""

from __future__ import annotations

from typing import Any


class ActloopError(Exception):
    """Base class for all actloop errors."""

    critical: bool = False


class CriticalError(ActloopError):
    """Raised by a capability or hook to terminate the run."""

    critical = True


class CapabilityNotFoundError(ActloopError):
    """The action's target is not in the capability registry."""

    def __init__(self, kind: str, name: str, available: list[str] | None = None) -> None:
        self.kind = kind
        self.name = name
        self.available = available or []
        msg = f"{kind} not found: {name}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


class ToolValidationError(ActloopError):
    """Tool parameters failed the tool's schema."""

    def __init__(self, tool: str, detail: Any) -> None:
        self.tool = tool
        self.detail = detail
        super().__init__(f"Invalid parameters for {tool}: {detail}")


class CapabilityTimeoutError(ActloopError, TimeoutError):
    """A capability handler did not return within the configured timeout."""

    def __init__(self, name: str, timeout: float) -> None:
        self.name = name
        self.timeout = timeout
        super().__init__(f"{name} timed out after {timeout:g}s")


class ProviderTimeoutError(ActloopError, TimeoutError):
    """The reasoning provider did not answer within the configured timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Reasoning provider timed out after {timeout:g}s")


def is_critical(exc: BaseException) -> bool:
    """True if ``exc`` is flagged to terminate the run.

    Third-party exceptions can opt in by carrying a truthy ``critical``
    attribute.
    """
    return bool(getattr(exc, "critical", False))
