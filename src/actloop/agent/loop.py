"""The observe -> think -> act -> learn loop."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from actloop.agent.memory import MemoryStore
from actloop.agent.planner import ActionPlanner, IntentPlanner
from actloop.agent.prompts import (
    LEARNING_PROMPT,
    LEARNING_SYSTEM,
    SYSTEM_PROMPT,
    THINKING_PROMPT,
)
from actloop.agent.state import (
    Action,
    ActionKind,
    Learning,
    MemoryRecord,
    Observation,
    ObservationKind,
    Phase,
    RunResult,
    RunState,
    Thought,
    dumps,
)
from actloop.capability.base import BaseTool, Skill, SubWorker
from actloop.capability.dispatcher import ActionDispatcher
from actloop.capability.registry import CapabilityRegistry
from actloop.config import ActloopConfig, LLMConfig, LoopConfig
from actloop.errors import ProviderTimeoutError, is_critical
from actloop.hooks.guard_rails import (
    DEFAULT_DENYLIST,
    DEFAULT_PRIVACY_PATTERNS,
    guard_rail_hooks,
)
from actloop.hooks.logging_hooks import JsonlAuditSink, logging_hooks
from actloop.hooks.pipeline import Hook, HookContext, HookPipeline, HookType
from actloop.hooks.shared import SharedHookState
from actloop.llm.parsing import parse_learning, parse_thought
from actloop.llm.provider import ReasoningProvider
from actloop.session.wire import EventType, Wire

logger = logging.getLogger(__name__)


class IterationOutcome(enum.Enum):
    """How a single iteration ended."""

    COMPLETED = "completed"  # acted and learned
    VETOED = "vetoed"  # pre-action stage blocked the action
    GOAL_ACHIEVED = "goal_achieved"  # terminal thought, no action taken


@dataclass
class _Step:
    """What the current iteration has produced so far (for the error stage)."""

    action: Action | None = None
    result: Any = None


@dataclass
class RunLog:
    """Timestamped, human-readable trace of a run."""

    enabled: bool = True
    lines: list[str] = field(default_factory=list)

    def __call__(self, message: str) -> None:
        if not self.enabled:
            return
        timestamp = datetime.now(timezone.utc).isoformat()
        self.lines.append(f"[{timestamp}] {message}")


class Orchestrator:
    """Drive a goal through bounded observe -> think -> act -> learn iterations.

    Args:
        provider: Reasoning provider for the Think and Learn calls.
        registry: Tools, skills, and sub-workers the agent may use.
        hooks: Hooks (or a ready pipeline) wrapped around every action.
        planner: Turns a Thought into an Action. Defaults to ``IntentPlanner``.
        config: Loop settings (iteration bound, timeouts, memory size).
        llm: Token budgets for the provider calls.
        wire: Optional event bus to publish progress on.

    An Orchestrator holds no per-run state, so one instance can serve
    several concurrent ``run`` calls.
    """

    def __init__(
        self,
        provider: ReasoningProvider,
        registry: CapabilityRegistry | None = None,
        hooks: HookPipeline | Iterable[Hook] = (),
        planner: ActionPlanner | None = None,
        config: LoopConfig | None = None,
        llm: LLMConfig | None = None,
        wire: Wire | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry if registry is not None else CapabilityRegistry()
        self.hooks = hooks if isinstance(hooks, HookPipeline) else HookPipeline(hooks)
        self.planner = planner or IntentPlanner(self.registry)
        self.config = config or LoopConfig()
        self.llm = llm or LLMConfig()
        self.wire = wire
        self.dispatcher = ActionDispatcher(self.registry, timeout=self.config.call_timeout)

    @classmethod
    def from_config(
        cls,
        provider: ReasoningProvider,
        config: ActloopConfig,
        tools: Iterable[BaseTool] = (),
        skills: Iterable[Skill] = (),
        subworkers: Iterable[SubWorker] = (),
        hooks: Iterable[Hook] = (),
        planner: ActionPlanner | None = None,
        shared: SharedHookState | None = None,
        wire: Wire | None = None,
    ) -> Orchestrator:
        """Build an orchestrator with the default hooks the config turns on.

        Caller-supplied ``hooks`` run first, then guard rails (if enabled),
        then the logging hooks (if logging is enabled).
        """
        pipeline = HookPipeline(hooks)
        rails = config.guard_rails
        if config.loop.enable_guard_rails:
            pipeline.register_many(
                guard_rail_hooks(
                    denylist=rails.denylist if rails.denylist is not None else DEFAULT_DENYLIST,
                    rate_limit=rails.rate_limit,
                    rate_window=rails.rate_window_seconds,
                    rate_limited_targets=rails.rate_limited_targets,
                    privacy_patterns=(
                        rails.privacy_patterns
                        if rails.privacy_patterns is not None
                        else DEFAULT_PRIVACY_PATTERNS
                    ),
                    critical_actions=rails.critical_actions,
                    shared=shared,
                    human_in_loop=config.loop.enable_human_in_loop,
                )
            )
        if config.loop.enable_logging:
            sink = JsonlAuditSink(config.audit_log_path) if config.audit_log_path else None
            pipeline.register_many(logging_hooks(shared, sink))

        registry = CapabilityRegistry.from_lists(tools, skills, subworkers)
        return cls(
            provider,
            registry=registry,
            hooks=pipeline,
            planner=planner,
            config=config.loop,
            llm=config.llm,
            wire=wire,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, goal: str, initial_context: dict[str, Any] | None = None) -> RunResult:
        """Run the loop until the goal is achieved, the iteration bound is
        hit, or a critical error occurs.

        Recoverable errors never escape; they are logged, passed to the
        error hooks, and the loop moves on to the next iteration.
        """
        state = RunState(
            goal=goal,
            context=dict(initial_context or {}),
            memory=MemoryStore(self.config.memory_capacity),
        )
        log = RunLog(enabled=self.config.enable_logging)
        max_iterations = self.config.max_iterations

        goal_achieved = False
        terminated_early = False
        reason = "max_iterations"

        log(f"Starting agent with goal: {goal}")
        logger.info("Run started: %s (max %d iterations)", goal, max_iterations)
        self._emit(EventType.RUN_BEGIN, goal=goal, max_iterations=max_iterations)

        while state.iteration < max_iterations:
            state.iteration += 1
            log(f"Iteration {state.iteration}")
            self._emit(EventType.ITERATION_BEGIN, iteration=state.iteration)

            step = _Step()
            try:
                outcome = await self._iterate(state, step, log)
            except Exception as e:
                log(f"Error in iteration {state.iteration}: {e}")
                logger.error(
                    "Iteration %d failed in %s phase: %s",
                    state.iteration,
                    state.phase.value,
                    e,
                    exc_info=True,
                )
                self._emit(EventType.ERROR, iteration=state.iteration, error=str(e))
                await self._run_error_stage(state, step, e, log)
                if is_critical(e):
                    log("Critical error, terminating")
                    terminated_early = True
                    reason = f"critical error: {e}"
                    break
                continue

            if outcome is IterationOutcome.GOAL_ACHIEVED:
                log("Goal achieved!")
                self._emit(EventType.GOAL_ACHIEVED, iteration=state.iteration)
                goal_achieved = True
                reason = "goal_achieved"
                break

        logger.info(
            "Run finished after %d iterations (%s)", state.iteration, reason
        )
        self._emit(EventType.RUN_END, iterations=state.iteration, reason=reason)

        return RunResult(
            success=True,
            result=state.context.get("result", state.context),
            iterations_used=state.iteration,
            log=log.lines,
            memory=state.memory.to_list(),
            goal_achieved=goal_achieved,
            terminated_early=terminated_early,
            reason=reason,
        )

    async def _iterate(self, state: RunState, step: _Step, log: RunLog) -> IterationOutcome:
        observation = self.observe(state)
        log(f"OBSERVE: {dumps(observation.content)}")
        self._emit(EventType.OBSERVE, iteration=state.iteration)

        thought = await self.think(state, observation)
        log(f"THINK: {thought.reasoning[:100]}...")
        self._emit(
            EventType.THINK,
            iteration=state.iteration,
            reasoning=thought.reasoning,
            confidence=thought.confidence,
        )
        if thought.is_terminal:
            return IterationOutcome.GOAL_ACHIEVED

        action = await self.plan(state, thought, log)
        step.action = action
        if action is None:
            return IterationOutcome.VETOED

        result = await self.act(state, action, log)
        step.result = result

        learning = await self.learn(state, action, result)
        log(f"LEARN: {', '.join(learning.insights)}")
        self._emit(
            EventType.LEARN,
            iteration=state.iteration,
            success=learning.success,
            insights=learning.insights,
        )
        return IterationOutcome.COMPLETED

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def observe(self, state: RunState) -> Observation:
        """Snapshot the run for the provider. Pure; no I/O."""
        state.phase = Phase.OBSERVE
        return Observation(
            kind=ObservationKind.ENVIRONMENT,
            content={
                "goal": state.goal,
                "context": state.context,
                "iteration": state.iteration,
                "available_tools": self.registry.names(ActionKind.TOOL_USE),
                "available_skills": self.registry.names(ActionKind.SKILL_INVOKE),
                "available_subagents": self.registry.names(ActionKind.SUBAGENT_SPAWN),
                "memory": [r.to_dict() for r in state.memory.recent(self.config.observe_memory)],
            },
        )

    async def think(self, state: RunState, observation: Observation) -> Thought:
        state.phase = Phase.THINK
        system = SYSTEM_PROMPT.format(goal=state.goal, capabilities=self.registry.describe())
        prompt = THINKING_PROMPT.format(observation=dumps(observation.content, indent=2))
        reply = await self._complete(system, prompt, self.llm.think_max_tokens)
        return parse_thought(reply)

    async def plan(self, state: RunState, thought: Thought, log: RunLog) -> Action | None:
        """Pick the action and pass it through the pre-action stage.

        Returns None when a hook vetoed the action.
        """
        state.phase = Phase.ACT
        action = await self.planner.plan(thought, state)

        outcome = await self.hooks.run(
            HookType.PRE_ACTION,
            HookContext(phase=Phase.ACT, state=state, action=action),
        )
        for hook_name, message in outcome.messages:
            log(f"Hook [{hook_name}]: {message}")
            self._emit(EventType.HOOK_MESSAGE, hook=hook_name, message=message)
        for hook_name in outcome.approvals:
            log(f"Human approval required: {hook_name}")
            self._emit(
                EventType.APPROVAL_REQUIRED, hook=hook_name, action=action.to_dict()
            )

        if not outcome.allowed:
            log("Action blocked by guard rails")
            self._emit(EventType.VETO, hook=outcome.blocked_by, action=action.to_dict())
            return None

        if outcome.action is not None:
            action = outcome.action
        return action

    async def act(self, state: RunState, action: Action, log: RunLog) -> Any:
        state.phase = Phase.ACT
        result = await self.dispatcher.dispatch(action, state)
        log(f"ACT: Executed {action.kind.value} - {action.target}")
        self._emit(
            EventType.ACT,
            iteration=state.iteration,
            action=action.to_dict(),
            result=dumps(result)[:500],
        )

        post = await self.hooks.run(
            HookType.POST_ACTION,
            HookContext(phase=Phase.ACT, state=state, action=action, result=result),
        )
        for hook_name, message in post.messages:
            log(f"Hook [{hook_name}]: {message}")
        if not post.allowed:
            logger.debug("Post-action hook %s returned a veto; ignored", post.blocked_by)
        return result

    async def learn(self, state: RunState, action: Action, result: Any) -> Learning:
        state.phase = Phase.LEARN
        prompt = LEARNING_PROMPT.format(action=dumps(action.to_dict()), result=dumps(result))
        reply = await self._complete(LEARNING_SYSTEM, prompt, self.llm.learn_max_tokens)
        learning = parse_learning(reply)

        if learning.new_knowledge:
            state.context.update(learning.new_knowledge)

        state.memory.append(
            MemoryRecord(
                content=learning.model_dump_json(by_alias=True),
                phase=Phase.LEARN,
                metadata={"iteration": state.iteration, "action": action.key},
            )
        )
        return learning

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _complete(self, system: str, prompt: str, max_tokens: int) -> str:
        timeout = self.config.call_timeout
        if timeout is None:
            return await self.provider.complete(system, prompt, max_tokens)
        try:
            return await asyncio.wait_for(
                self.provider.complete(system, prompt, max_tokens), timeout
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(timeout) from e

    async def _run_error_stage(
        self, state: RunState, step: _Step, error: Exception, log: RunLog
    ) -> None:
        ctx = HookContext(
            phase=state.phase,
            state=state,
            action=step.action,
            result=step.result,
            error=error,
        )
        try:
            outcome = await self.hooks.run(HookType.ERROR, ctx)
        except Exception as hook_error:
            # Keep the original error as the reported one
            log(f"Error hook failed: {hook_error}")
            logger.error("Error hook failed: %s", hook_error, exc_info=True)
            return
        for hook_name, message in outcome.messages:
            log(f"Hook [{hook_name}]: {message}")

    def _emit(self, type: EventType, **data: Any) -> None:
        if self.wire is not None:
            self.wire.emit(type, **data)

