"""Hook system — pipeline, guard rails, and logging hooks."""

from actloop.hooks.guard_rails import (
    content_safety_hook,
    data_privacy_hook,
    guard_rail_hooks,
    human_approval_hook,
    rate_limit_hook,
)
from actloop.hooks.logging_hooks import (
    JsonlAuditSink,
    action_logger_hook,
    audit_trail_hook,
    get_audit_trail,
    get_performance_metrics,
    logging_hooks,
    performance_hook,
)
from actloop.hooks.pipeline import (
    Hook,
    HookContext,
    HookPipeline,
    HookResult,
    HookType,
    StageOutcome,
    apply_modification,
)
from actloop.hooks.shared import SharedHookState, default_shared_state

__all__ = [
    "Hook",
    "HookContext",
    "HookPipeline",
    "HookResult",
    "HookType",
    "StageOutcome",
    "apply_modification",
    "SharedHookState",
    "default_shared_state",
    "content_safety_hook",
    "data_privacy_hook",
    "guard_rail_hooks",
    "human_approval_hook",
    "rate_limit_hook",
    "JsonlAuditSink",
    "action_logger_hook",
    "audit_trail_hook",
    "get_audit_trail",
    "get_performance_metrics",
    "logging_hooks",
    "performance_hook",
]
