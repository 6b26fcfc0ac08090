"""Hook pipeline — an ordered, vetoable middleware chain around actions.

Hooks are selected by stage and run in registration order. The first hook
that answers ``allowed=False`` stops the chain and the stage is blocked.
``require_human_approval`` is advisory: it is recorded and logged but never
blocks by itself.
"""

from __future__ import annotations

import enum
import inspect
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from actloop.agent.state import Action, Phase, RunState

logger = logging.getLogger(__name__)


class HookType(enum.Enum):
    PRE_ACTION = "pre-action"
    POST_ACTION = "post-action"
    ERROR = "error"
    LOGGING = "logging"
    GUARD_RAIL = "guard-rail"
    HUMAN_IN_LOOP = "human-in-loop"


# Which hook types take part in each stage the loop runs. Stages not listed
# here (e.g. running LOGGING directly) select only hooks of their own type.
STAGE_HOOK_TYPES: dict[HookType, frozenset[HookType]] = {
    HookType.PRE_ACTION: frozenset(
        {
            HookType.PRE_ACTION,
            HookType.GUARD_RAIL,
            HookType.HUMAN_IN_LOOP,
            HookType.LOGGING,
        }
    ),
    HookType.POST_ACTION: frozenset({HookType.POST_ACTION, HookType.LOGGING}),
    HookType.ERROR: frozenset({HookType.ERROR, HookType.LOGGING}),
}


@dataclass
class HookContext:
    """What a hook gets to look at."""

    phase: Phase
    state: RunState
    stage: HookType = HookType.PRE_ACTION
    action: Action | None = None
    result: Any = None
    error: BaseException | None = None


@dataclass
class HookResult:
    allowed: bool = True
    modified: Any = None
    message: str | None = None
    require_human_approval: bool = False


HookHandler = Callable[[HookContext], "HookResult | Awaitable[HookResult]"]


@dataclass
class Hook:
    """A named handler attached to one hook type."""

    name: str
    type: HookType
    handler: HookHandler

    async def __call__(self, ctx: HookContext) -> HookResult:
        result = self.handler(ctx)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, HookResult):
            raise TypeError(
                f"Hook {self.name} returned {type(result).__name__}, expected HookResult"
            )
        return result


@dataclass
class StageOutcome:
    """Aggregate result of running one stage."""

    stage: HookType
    allowed: bool = True
    blocked_by: str | None = None
    modified: Any = None
    messages: list[tuple[str, str]] = field(default_factory=list)  # (hook, message)
    approvals: list[str] = field(default_factory=list)  # hooks asking for approval
    invoked: list[str] = field(default_factory=list)
    action: Action | None = None  # the action as the last hook saw it

    @property
    def requires_human_approval(self) -> bool:
        return bool(self.approvals)


def apply_modification(action: Action, modified: Any) -> Action:
    """Fold a hook's ``modified`` value into the action.

    An Action replaces the action outright; a dict replaces its parameters.
    """
    if isinstance(modified, Action):
        return modified
    if isinstance(modified, dict):
        return replace(action, parameters=dict(modified))
    logger.warning("Ignoring hook modification of type %s", type(modified).__name__)
    return action


class HookPipeline:
    """Ordered middleware chain with early return on veto."""

    def __init__(self, hooks: Iterable[Hook] = ()) -> None:
        self._hooks: list[Hook] = list(hooks)

    def register(self, hook: Hook) -> None:
        self._hooks.append(hook)

    def register_many(self, hooks: Iterable[Hook]) -> None:
        for hook in hooks:
            self.register(hook)

    @property
    def hooks(self) -> list[Hook]:
        return list(self._hooks)

    def hooks_for(self, stage: HookType) -> list[Hook]:
        """Hooks that take part in ``stage``, in registration order."""
        types = STAGE_HOOK_TYPES.get(stage, frozenset({stage}))
        return [h for h in self._hooks if h.type in types]

    async def run(self, stage: HookType, ctx: HookContext) -> StageOutcome:
        """Run every hook of ``stage`` until one vetoes.

        Exceptions raised by a hook propagate to the caller.
        """
        ctx.stage = stage
        outcome = StageOutcome(stage=stage)

        for hook in self.hooks_for(stage):
            outcome.invoked.append(hook.name)
            result = await hook(ctx)

            if result.message:
                logger.info("Hook [%s]: %s", hook.name, result.message)
                outcome.messages.append((hook.name, result.message))

            if result.require_human_approval:
                logger.warning("Human approval required for: %s", hook.name)
                outcome.approvals.append(hook.name)

            if result.modified is not None:
                outcome.modified = result.modified
                if ctx.action is not None:
                    # Later hooks judge the action that will be dispatched
                    ctx.action = apply_modification(ctx.action, result.modified)

            if not result.allowed:
                outcome.allowed = False
                outcome.blocked_by = hook.name
                logger.info("Stage %s blocked by hook %s", stage.value, hook.name)
                break

        outcome.action = ctx.action
        return outcome

    async def run_stage(
        self,
        stage: HookType,
        *,
        phase: Phase,
        state: RunState,
        action: Action | None = None,
        result: Any = None,
        error: BaseException | None = None,
    ) -> bool:
        """Run ``stage`` with a context built from the given parts.

        Returns True if allowed, False if blocked.
        """
        ctx = HookContext(
            phase=phase,
            state=state,
            stage=stage,
            action=action,
            result=result,
            error=error,
        )
        outcome = await self.run(stage, ctx)
        return outcome.allowed

    def __len__(self) -> int:
        return len(self._hooks)
