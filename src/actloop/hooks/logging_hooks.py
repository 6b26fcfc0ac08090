"""Logging hooks — observe and record actions, never veto them."""

from __future__ import annotations

import copy
import json
import logging
import time
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles

from actloop.agent.state import to_jsonable
from actloop.hooks.pipeline import Hook, HookContext, HookResult, HookType
from actloop.hooks.shared import SharedHookState, default_shared_state

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = ("password", "apikey", "api_key", "secret", "token", "creditcard")
REDACTED = "[REDACTED]"


def sanitize_for_audit(data: Any) -> Any:
    """Return a JSON-safe copy of ``data`` with sensitive-looking keys redacted.

    A key is sensitive if it contains any of ``SENSITIVE_FIELDS``
    (case-insensitive). Redaction is applied at every nesting level.
    """
    if data is None:
        return None
    return _redact(copy.deepcopy(to_jsonable(data)))


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        cleaned = {}
        for key, value in obj.items():
            lowered = str(key).lower()
            if any(f in lowered for f in SENSITIVE_FIELDS):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = _redact(value)
        return cleaned
    if isinstance(obj, list):
        return [_redact(v) for v in obj]
    return obj


def _action_summary(ctx: HookContext, sanitize: bool = False) -> dict[str, Any] | None:
    if ctx.action is None:
        return None
    params = ctx.action.parameters
    return {
        "type": ctx.action.kind.value,
        "target": ctx.action.target,
        "parameters": sanitize_for_audit(params) if sanitize else to_jsonable(params),
    }


def action_logger_hook() -> Hook:
    """Emit one structured log line per stage an action goes through."""

    def handler(ctx: HookContext) -> HookResult:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "stage": ctx.stage.value,
            "phase": ctx.phase.value,
            "iteration": ctx.state.iteration,
            "action": _action_summary(ctx, sanitize=True),
        }
        logger.info("Action log: %s", json.dumps(entry))
        return HookResult()

    return Hook(name="action-logger", type=HookType.LOGGING, handler=handler)


def performance_hook(shared: SharedHookState | None = None) -> Hook:
    """Time each action from the pre-action stage to the post-action stage.

    Durations are keyed by ``(kind, target)`` in the shared store; the start
    stamp is kept on the run's own ``RunState.timers``.
    """

    def handler(ctx: HookContext) -> HookResult:
        if ctx.action is None:
            return HookResult()
        key = ctx.action.key
        timer_key = f"_start_{key}"

        if ctx.stage is HookType.PRE_ACTION:
            ctx.state.timers[timer_key] = time.perf_counter()
            return HookResult()

        started = ctx.state.timers.pop(timer_key, None)
        if started is None:
            return HookResult()

        millis = (time.perf_counter() - started) * 1000
        store = shared or default_shared_state()
        calls, average = store.record_duration(key, millis)
        logger.info(
            "Performance: %s took %.2fms (average %.2fms over %d calls)",
            key,
            millis,
            average,
            calls,
        )
        return HookResult()

    return Hook(name="performance-logger", type=HookType.LOGGING, handler=handler)


class JsonlAuditSink:
    """Append audit entries to a JSON-lines file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def write(self, entry: dict[str, Any]) -> None:
        async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
            await f.write(json.dumps(entry, ensure_ascii=False) + "\n")


def audit_trail_hook(
    shared: SharedHookState | None = None,
    sink: JsonlAuditSink | None = None,
) -> Hook:
    """Record a redacted audit entry for every stage.

    Entries go to the shared store (capped, oldest dropped first) and, when
    a sink is given, to disk.
    """

    async def handler(ctx: HookContext) -> HookResult:
        error = None
        if ctx.error is not None:
            error = {
                "message": str(ctx.error),
                "type": type(ctx.error).__name__,
                "stack": "".join(
                    traceback.format_exception(
                        type(ctx.error), ctx.error, ctx.error.__traceback__
                    )
                ),
            }
        entry = {
            "id": f"audit_{uuid.uuid4().hex[:12]}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "stage": ctx.stage.value,
            "phase": ctx.phase.value,
            "iteration": ctx.state.iteration,
            "goal": ctx.state.goal,
            "action": _action_summary(ctx, sanitize=True),
            "result": sanitize_for_audit(ctx.result),
            "error": error,
        }
        (shared or default_shared_state()).append_audit(entry)
        if sink is not None:
            await sink.write(entry)
        return HookResult()

    return Hook(name="audit-trail", type=HookType.LOGGING, handler=handler)


def logging_hooks(
    shared: SharedHookState | None = None,
    sink: JsonlAuditSink | None = None,
) -> list[Hook]:
    """Action logger, performance timer, and audit trail."""
    return [
        action_logger_hook(),
        performance_hook(shared),
        audit_trail_hook(shared, sink),
    ]


def get_audit_trail(shared: SharedHookState | None = None) -> list[dict[str, Any]]:
    return (shared or default_shared_state()).audit_trail()


def get_performance_metrics(shared: SharedHookState | None = None) -> dict[str, list[float]]:
    return (shared or default_shared_state()).performance_metrics()
