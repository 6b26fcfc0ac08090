"""Guard-rail hooks — veto unsafe or unwanted actions before they run.

Each factory returns a ``Hook``. Compose them freely; the pipeline runs
them in the order they were registered.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from actloop.agent.state import Action, ActionKind, to_jsonable
from actloop.hooks.pipeline import Hook, HookContext, HookResult, HookType
from actloop.hooks.shared import SharedHookState, default_shared_state

logger = logging.getLogger(__name__)

DEFAULT_DENYLIST = (
    "spam",
    "guaranteed",
    "click here now",
    "limited time",
    "act now",
)

DEFAULT_PRIVACY_PATTERNS = (
    r"\b\d{3}-\d{2}-\d{4}\b",  # national ID (SSN-like)
    r"\b\d{16}\b",  # card number
    r"\bsk_live_\w+\b",  # secret API key
    r"(?i)password\s*[:=]\s*\S+",
)

DEFAULT_CRITICAL_ACTIONS = ("send_email", "create_lead", "write_file")

DEFAULT_RATE_LIMIT = 10
DEFAULT_RATE_WINDOW = 60 * 60  # 1 hour


def _applies(
    action: Action,
    kinds: Iterable[ActionKind] | None,
    targets: Iterable[str] | None,
) -> bool:
    if kinds is not None and action.kind not in kinds:
        return False
    if targets is not None and action.target not in targets:
        return False
    return True


def _text_values(value: Any) -> list[str]:
    """Every string found in a (nested) parameter structure."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return [s for v in value.values() for s in _text_values(v)]
    if isinstance(value, (list, tuple)):
        return [s for v in value for s in _text_values(v)]
    return []


def content_safety_hook(
    denylist: Iterable[str] = DEFAULT_DENYLIST,
    kinds: Iterable[ActionKind] | None = None,
    targets: Iterable[str] | None = None,
) -> Hook:
    """Block actions whose text parameters contain denylisted wording."""
    phrases = tuple(p.lower() for p in denylist if p)
    kinds = tuple(kinds) if kinds is not None else None
    targets = frozenset(targets) if targets is not None else None

    def handler(ctx: HookContext) -> HookResult:
        if ctx.action is None or not _applies(ctx.action, kinds, targets):
            return HookResult()
        content = " ".join(_text_values(ctx.action.parameters)).lower()
        hits = [p for p in phrases if p in content]
        if hits:
            return HookResult(
                allowed=False,
                message=f"Content flagged as unsafe ({', '.join(hits)})",
                require_human_approval=True,
            )
        return HookResult()

    return Hook(name="content-safety", type=HookType.GUARD_RAIL, handler=handler)


def rate_limit_hook(
    limit: int = DEFAULT_RATE_LIMIT,
    window: float = DEFAULT_RATE_WINDOW,
    kinds: Iterable[ActionKind] | None = None,
    targets: Iterable[str] | None = None,
    shared: SharedHookState | None = None,
) -> Hook:
    """Allow at most ``limit`` actions per target inside ``window`` seconds.

    Counters live in ``shared`` (the process-wide state by default) and are
    keyed by the action's target, so every run using the same state draws
    on the same budget. Blocked attempts still count.
    """
    if limit < 0:
        raise ValueError(f"Rate limit must be non-negative, got {limit}")
    kinds = tuple(kinds) if kinds is not None else None
    targets = frozenset(targets) if targets is not None else None

    def handler(ctx: HookContext) -> HookResult:
        if ctx.action is None or not _applies(ctx.action, kinds, targets):
            return HookResult()
        store = shared or default_shared_state()
        count = store.hit(ctx.action.target, window)
        if count > limit:
            return HookResult(
                allowed=False,
                message=(
                    f"Rate limit exceeded: maximum {limit} {ctx.action.target} "
                    f"actions per {window:g}s"
                ),
            )
        return HookResult()

    return Hook(name="rate-limiting", type=HookType.GUARD_RAIL, handler=handler)


def data_privacy_hook(
    patterns: Iterable[str] = DEFAULT_PRIVACY_PATTERNS,
) -> Hook:
    """Block actions whose serialized parameters look like they carry secrets."""
    compiled = [re.compile(p) for p in patterns]

    def handler(ctx: HookContext) -> HookResult:
        if ctx.action is None:
            return HookResult()
        serialized = json.dumps(to_jsonable(ctx.action.parameters))
        for pattern in compiled:
            if pattern.search(serialized):
                return HookResult(
                    allowed=False,
                    message="Action contains potentially sensitive data",
                    require_human_approval=True,
                )
        return HookResult()

    return Hook(name="data-privacy", type=HookType.GUARD_RAIL, handler=handler)


def human_approval_hook(
    critical_actions: Iterable[str] = DEFAULT_CRITICAL_ACTIONS,
    kinds: Iterable[ActionKind] | None = None,
) -> Hook:
    """Flag critical actions for human approval without blocking them.

    There is no pause/resume here; the flag is a point for an external
    approval system to observe.
    """
    critical = frozenset(critical_actions)
    kinds = tuple(kinds) if kinds is not None else None

    def handler(ctx: HookContext) -> HookResult:
        if ctx.action is None or not _applies(ctx.action, kinds, critical):
            return HookResult()
        logger.info("Requesting human approval for: %s", ctx.action.target)
        return HookResult(
            allowed=True,
            message=f"Human approval required for {ctx.action.target}",
            require_human_approval=True,
        )

    return Hook(name="human-approval", type=HookType.HUMAN_IN_LOOP, handler=handler)


def guard_rail_hooks(
    denylist: Iterable[str] = DEFAULT_DENYLIST,
    rate_limit: int = DEFAULT_RATE_LIMIT,
    rate_window: float = DEFAULT_RATE_WINDOW,
    rate_limited_targets: Iterable[str] | None = None,
    privacy_patterns: Iterable[str] = DEFAULT_PRIVACY_PATTERNS,
    critical_actions: Iterable[str] = DEFAULT_CRITICAL_ACTIONS,
    shared: SharedHookState | None = None,
    human_in_loop: bool = True,
) -> list[Hook]:
    """All guard rails in their usual order: safety, rate, privacy, approval."""
    hooks = [
        content_safety_hook(denylist),
        rate_limit_hook(
            limit=rate_limit,
            window=rate_window,
            targets=rate_limited_targets,
            shared=shared,
        ),
        data_privacy_hook(privacy_patterns),
    ]
    if human_in_loop:
        hooks.append(human_approval_hook(critical_actions))
    return hooks
