"""Action dispatcher — route an action to the capability that handles it."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

from actloop.agent.state import Action, ActionKind, RunState
from actloop.capability.base import Capability
from actloop.capability.registry import CapabilityRegistry
from actloop.errors import CapabilityNotFoundError, CapabilityTimeoutError

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Resolve an action's target and invoke the matching handler.

    Args:
        registry: Capabilities available to the run.
        timeout: Optional per-call limit in seconds. Expiry raises
            ``CapabilityTimeoutError``, which the loop treats as recoverable.
    """

    def __init__(self, registry: CapabilityRegistry, timeout: float | None = None) -> None:
        self.registry = registry
        self.timeout = timeout

    async def dispatch(self, action: Action, state: RunState) -> Any:
        """Execute ``action`` and return its result as-is.

        Raises:
            CapabilityNotFoundError: the target is not registered for the
                action's kind. No other handler is tried.
        """
        if action.kind is ActionKind.RESPOND:
            return action.parameters

        capability = self._resolve(action)

        if action.kind is ActionKind.TOOL_USE:
            logger.info("Executing tool: %s", capability.name)
            payload: Any = action.parameters
        elif action.kind is ActionKind.SKILL_INVOKE:
            logger.info("Executing skill: %s", capability.name)
            payload = state
        elif action.kind is ActionKind.SUBAGENT_SPAWN:
            logger.info("Spawning subagent: %s", capability.name)
            payload = self._subworker_payload(capability, action, state)
        else:
            raise ValueError(f"Unknown action type: {action.kind}")

        return await self._invoke(capability, payload)

    def _resolve(self, action: Action) -> Capability:
        capability = self.registry.get(action.kind, action.target)
        if capability is None:
            raise CapabilityNotFoundError(
                self.registry.label(action.kind),
                action.target,
                self.registry.names(action.kind),
            )
        return capability

    @staticmethod
    def _subworker_payload(
        capability: Capability, action: Action, state: RunState
    ) -> tuple[str, dict[str, Any]]:
        task = str(action.parameters.get("task", ""))
        supplied = action.parameters.get("context") or {}
        if getattr(capability, "isolated", True):
            context = copy.deepcopy(dict(supplied))
        else:
            # Shared workers see the run's context, still as a copy
            context = copy.deepcopy({**state.context, **supplied})
        return task, context

    async def _invoke(self, capability: Capability, payload: Any) -> Any:
        if self.timeout is None:
            return await capability.invoke(payload)
        try:
            return await asyncio.wait_for(capability.invoke(payload), self.timeout)
        except asyncio.TimeoutError as e:
            raise CapabilityTimeoutError(capability.name, self.timeout) from e
