"""Action planners — turn a Thought into the one Action of an iteration."""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from actloop.agent.state import Action, ActionKind, RunState, Thought

if TYPE_CHECKING:
    from actloop.capability.registry import CapabilityRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class ActionPlanner(Protocol):
    async def plan(self, thought: Thought, state: RunState) -> Action: ...


class RespondPlanner:
    """Always answer the user with the reasoning text."""

    async def plan(self, thought: Thought, state: RunState) -> Action:
        return Action(
            kind=ActionKind.RESPOND,
            target="user",
            parameters={"message": thought.reasoning},
        )


class FixedPlanner:
    """Always emit (a copy of) the same action."""

    def __init__(self, action: Action) -> None:
        self.action = action

    async def plan(self, thought: Thought, state: RunState) -> Action:
        return copy.deepcopy(self.action)


class IntentPlanner:
    """Follow the provider's structured intent when it gave one.

    Order of preference:
    1. ``thought.intent`` parsed from the Think reply.
    2. The first auto-invoke skill whose trigger appears in the reasoning.
    3. The fallback planner (``RespondPlanner`` by default).

    The intent's target is not checked against the registry here; an
    unknown target fails in dispatch like any other miss.
    """

    def __init__(
        self,
        registry: CapabilityRegistry | None = None,
        fallback: ActionPlanner | None = None,
    ) -> None:
        self.registry = registry
        self.fallback = fallback or RespondPlanner()

    async def plan(self, thought: Thought, state: RunState) -> Action:
        if thought.intent is not None:
            intent = thought.intent
            logger.debug("Planning from intent: %s %s", intent.kind.value, intent.target)
            return Action(
                kind=intent.kind,
                target=intent.target,
                parameters=dict(intent.parameters),
                metadata={"planner": "intent", "confidence": thought.confidence},
            )

        if self.registry is not None:
            for skill in self.registry.auto_invoke_skills():
                if skill.matches(thought.reasoning):
                    logger.info("Auto-invoking skill: %s", skill.name)
                    return Action(
                        kind=ActionKind.SKILL_INVOKE,
                        target=skill.name,
                        metadata={"planner": "auto-invoke"},
                    )

        return await self.fallback.plan(thought, state)
