"""Tests for actloop.agent.loop (Orchestrator end to end)."""

from __future__ import annotations

import asyncio
import json

from actloop.agent.loop import Orchestrator, RunLog
from actloop.agent.planner import FixedPlanner, RespondPlanner
from actloop.agent.state import Action, ActionKind, Phase
from actloop.capability.base import FunctionSkill, FunctionSubWorker, FunctionTool
from actloop.capability.registry import CapabilityRegistry
from actloop.config import ActloopConfig, LoopConfig
from actloop.errors import CriticalError
from actloop.hooks.guard_rails import content_safety_hook, data_privacy_hook
from actloop.hooks.pipeline import Hook, HookContext, HookResult, HookType
from actloop.hooks.shared import SharedHookState
from actloop.llm.provider import ScriptedProvider
from actloop.session.wire import EventType, Wire

LEARNED = json.dumps({"success": True, "insights": ["echoed"], "adjustments": []})


def _echo_registry() -> CapabilityRegistry:
    return CapabilityRegistry.from_lists(
        tools=[FunctionTool("echo", "Return the input", handler=lambda params: params)]
    )


def _echo_action() -> Action:
    return Action(kind=ActionKind.TOOL_USE, target="echo", parameters={"x": 1})


def _recorder(calls: list[HookContext], hook_type: HookType, allowed: bool = True) -> Hook:
    def handler(ctx: HookContext) -> HookResult:
        calls.append(ctx)
        return HookResult(allowed=allowed, message=None if allowed else "nope")

    return Hook(name=f"rec-{hook_type.value}", type=hook_type, handler=handler)


# ---------------------------------------------------------------------------
# Terminal detection
# ---------------------------------------------------------------------------


class TestGoalAchieved:
    async def test_say_hello_terminates_on_first_iteration(self) -> None:
        provider = ScriptedProvider.of("Nothing to do. GOAL_ACHIEVED")
        orch = Orchestrator(provider, config=LoopConfig(max_iterations=1))

        result = await orch.run("say hello")

        assert result.success is True
        assert result.goal_achieved is True
        assert result.iterations_used == 1
        assert result.memory == []
        assert result.result == {}
        assert len(provider.calls) == 1  # think only, no learn

    async def test_terminal_iteration_skips_act_and_learn(self) -> None:
        calls: list[HookContext] = []
        provider = ScriptedProvider.of("keep going", LEARNED, "GOAL_ACHIEVED")
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            hooks=[_recorder(calls, HookType.PRE_ACTION)],
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=5),
        )

        result = await orch.run("echo once")

        assert result.iterations_used == 2
        assert len(calls) == 1
        assert len(result.memory) == 1
        assert result.reason == "goal_achieved"

    async def test_result_comes_from_context(self) -> None:
        provider = ScriptedProvider.of("GOAL_ACHIEVED")
        orch = Orchestrator(provider)

        result = await orch.run("g", initial_context={"result": "done", "other": 1})

        assert result.result == "done"

    async def test_initial_context_not_mutated(self) -> None:
        learning = json.dumps(
            {"success": True, "insights": [], "adjustments": [], "newKnowledge": {"k": 2}}
        )
        provider = ScriptedProvider.of("act", learning)
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
        )
        initial = {"a": 1}

        result = await orch.run("g", initial_context=initial)

        assert initial == {"a": 1}
        assert result.result == {"a": 1, "k": 2}


# ---------------------------------------------------------------------------
# Act and learn
# ---------------------------------------------------------------------------


class TestActAndLearn:
    async def test_echo_tool_dispatch_and_memory(self) -> None:
        post: list[HookContext] = []
        provider = ScriptedProvider.of("use echo", LEARNED)
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            hooks=[_recorder(post, HookType.POST_ACTION)],
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
        )

        result = await orch.run("echo x")

        assert post[0].result == {"x": 1}
        assert len(result.memory) == 1
        record = result.memory[0]
        assert record.phase is Phase.LEARN
        assert record.metadata["iteration"] == 1
        assert json.loads(record.content)["insights"] == ["echoed"]

    async def test_learn_prompt_carries_action_and_result(self) -> None:
        provider = ScriptedProvider.of("use echo", LEARNED)
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
        )

        await orch.run("echo x")

        learn_call = provider.calls[1]
        assert '"target": "echo"' in learn_call.prompt
        assert '{"x": 1}' in learn_call.prompt
        assert learn_call.max_tokens == 1000
        assert provider.calls[0].max_tokens == 2000

    async def test_unparseable_learning_uses_default(self) -> None:
        provider = ScriptedProvider.of("use echo", "no json here")
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
        )

        result = await orch.run("echo x")

        learning = json.loads(result.memory[0].content)
        assert learning["success"] is True
        assert learning["insights"] == ["Action completed"]
        assert learning["adjustments"] == []

    async def test_intent_from_reply_drives_dispatch(self) -> None:
        reply = 'I will echo.\n{"action": {"type": "tool_use", "target": "echo", "parameters": {"y": 2}}}'
        post: list[HookContext] = []
        provider = ScriptedProvider.of(reply, LEARNED)
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            hooks=[_recorder(post, HookType.POST_ACTION)],
            config=LoopConfig(max_iterations=1),
        )

        await orch.run("echo y")

        assert post[0].action.target == "echo"
        assert post[0].result == {"y": 2}

    async def test_respond_planner_returns_parameters(self) -> None:
        post: list[HookContext] = []
        provider = ScriptedProvider.of("Hello there", LEARNED)
        orch = Orchestrator(
            provider,
            hooks=[_recorder(post, HookType.POST_ACTION)],
            planner=RespondPlanner(),
            config=LoopConfig(max_iterations=1),
        )

        await orch.run("greet")

        assert post[0].action.kind is ActionKind.RESPOND
        assert post[0].result == {"message": "Hello there"}

    async def test_skill_sees_run_state(self) -> None:
        seen = []
        skill = FunctionSkill("peek", "Look at the goal", handler=lambda s: seen.append(s.goal))
        provider = ScriptedProvider.of("peek", LEARNED)
        orch = Orchestrator(
            provider,
            registry=CapabilityRegistry.from_lists(skills=[skill]),
            planner=FixedPlanner(Action(kind=ActionKind.SKILL_INVOKE, target="peek")),
            config=LoopConfig(max_iterations=1),
        )

        await orch.run("inspect me")

        assert seen == ["inspect me"]

    async def test_isolated_subworker_does_not_see_context(self) -> None:
        seen: list[dict] = []

        def worker(task: str, context: dict) -> str:
            seen.append(context)
            context["leak"] = True
            return task.upper()

        sub = FunctionSubWorker("shout", "Uppercase the task", handler=worker)
        action = Action(
            kind=ActionKind.SUBAGENT_SPAWN,
            target="shout",
            parameters={"task": "hi", "context": {"given": 1}},
        )
        provider = ScriptedProvider.of("delegate", LEARNED)
        orch = Orchestrator(
            provider,
            registry=CapabilityRegistry.from_lists(subworkers=[sub]),
            planner=FixedPlanner(action),
            config=LoopConfig(max_iterations=1),
        )

        result = await orch.run("g", initial_context={"secret": "s"})

        assert seen == [{"given": 1, "leak": True}]
        assert result.result == {"secret": "s"}


# ---------------------------------------------------------------------------
# Iteration bound
# ---------------------------------------------------------------------------


class TestIterationBound:
    async def test_never_exceeds_max_iterations(self) -> None:
        provider = ScriptedProvider(default="still working")
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=3),
        )

        result = await orch.run("forever")

        assert result.iterations_used == 3
        assert result.goal_achieved is False
        assert result.reason == "max_iterations"
        assert len(result.memory) == 3

    async def test_memory_capacity_respected(self) -> None:
        provider = ScriptedProvider(default="still working")
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=4, memory_capacity=2),
        )

        result = await orch.run("forever")

        assert [r.metadata["iteration"] for r in result.memory] == [3, 4]

    async def test_memory_never_exceeds_100_records(self) -> None:
        orch = Orchestrator(
            ScriptedProvider(default="still working"),
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=120),
        )

        result = await orch.run("forever")

        assert result.iterations_used == 120
        assert len(result.memory) == 100
        assert result.memory[0].metadata["iteration"] == 21

    async def test_observation_shows_recent_memory(self) -> None:
        provider = ScriptedProvider(default="still working")
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=3, observe_memory=1),
        )

        await orch.run("forever")

        third_think = provider.calls[4].prompt
        assert third_think.count('"phase": "learn"') == 1
        assert "echo" in provider.calls[0].system


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


class TestHooks:
    async def test_veto_skips_dispatch_and_learn(self) -> None:
        called = []
        tool = FunctionTool("echo", "Echo", handler=lambda p: called.append(p) or p)
        provider = ScriptedProvider(default="try again")
        orch = Orchestrator(
            provider,
            registry=CapabilityRegistry.from_lists(tools=[tool]),
            hooks=[_recorder([], HookType.GUARD_RAIL, allowed=False)],
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=2),
        )

        result = await orch.run("blocked")

        assert called == []
        assert result.memory == []
        assert result.iterations_used == 2
        assert len(provider.calls) == 2  # thinks only
        assert any("Action blocked by guard rails" in line for line in result.log)

    async def test_modified_parameters_are_dispatched(self) -> None:
        post: list[HookContext] = []

        def rewrite(ctx: HookContext) -> HookResult:
            return HookResult(modified={"x": 99})

        provider = ScriptedProvider.of("echo", LEARNED)
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            hooks=[
                Hook(name="rewrite", type=HookType.PRE_ACTION, handler=rewrite),
                _recorder(post, HookType.POST_ACTION),
            ],
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
        )

        await orch.run("echo")

        assert post[0].result == {"x": 99}

    async def test_modified_parameters_still_pass_guard_rails(self) -> None:
        dispatched: list[dict] = []
        tool = FunctionTool("echo", "Echo", handler=lambda p: dispatched.append(p) or p)

        def rewrite(ctx: HookContext) -> HookResult:
            return HookResult(modified={"body": "password=hunter2"})

        orch = Orchestrator(
            ScriptedProvider(default="send it"),
            registry=CapabilityRegistry.from_lists(tools=[tool]),
            hooks=[
                Hook(name="rewrite", type=HookType.PRE_ACTION, handler=rewrite),
                data_privacy_hook(),
            ],
            planner=FixedPlanner(
                Action(kind=ActionKind.TOOL_USE, target="echo", parameters={"body": "hi"})
            ),
            config=LoopConfig(max_iterations=1),
        )

        result = await orch.run("send")

        assert dispatched == []
        assert result.memory == []
        assert any("Action blocked by guard rails" in line for line in result.log)

    async def test_replacement_action_still_passes_content_safety(self) -> None:
        dispatched: list[dict] = []
        tool = FunctionTool("echo", "Echo", handler=lambda p: dispatched.append(p) or p)
        replacement = Action(
            kind=ActionKind.TOOL_USE, target="echo", parameters={"text": "guaranteed spam"}
        )

        orch = Orchestrator(
            ScriptedProvider(default="send it"),
            registry=CapabilityRegistry.from_lists(tools=[tool]),
            hooks=[
                Hook(
                    name="swap",
                    type=HookType.PRE_ACTION,
                    handler=lambda ctx: HookResult(modified=replacement),
                ),
                content_safety_hook(),
            ],
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
        )

        await orch.run("send")

        assert dispatched == []

    async def test_content_safety_checks_respond_actions(self) -> None:
        provider = ScriptedProvider.of("Buy now, guaranteed spam", LEARNED)
        orch = Orchestrator(
            provider,
            hooks=[content_safety_hook()],
            planner=RespondPlanner(),
            config=LoopConfig(max_iterations=1),
        )

        result = await orch.run("reply")

        assert result.memory == []
        assert len(provider.calls) == 1  # think only, vetoed before learn

    async def test_post_action_veto_is_ignored(self) -> None:
        provider = ScriptedProvider.of("echo", LEARNED)
        orch = Orchestrator(
            provider,
            registry=_echo_registry(),
            hooks=[_recorder([], HookType.POST_ACTION, allowed=False)],
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
        )

        result = await orch.run("echo")

        assert len(result.memory) == 1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    async def test_recoverable_error_continues(self) -> None:
        errors: list[HookContext] = []
        provider = ScriptedProvider(default="try")
        orch = Orchestrator(
            provider,
            hooks=[_recorder(errors, HookType.ERROR)],
            planner=FixedPlanner(Action(kind=ActionKind.TOOL_USE, target="missing")),
            config=LoopConfig(max_iterations=3),
        )

        result = await orch.run("use a missing tool")

        assert result.iterations_used == 3
        assert result.terminated_early is False
        assert len(errors) == 3
        assert "not found: missing" in str(errors[0].error)
        assert errors[0].action.target == "missing"
        assert any("Error in iteration 1" in line for line in result.log)

    async def test_critical_error_stops_run(self) -> None:
        def explode(params: dict) -> None:
            raise CriticalError("database gone")

        tool = FunctionTool("explode", "Fails hard", handler=explode)
        errors: list[HookContext] = []
        provider = ScriptedProvider(default="try")
        orch = Orchestrator(
            provider,
            registry=CapabilityRegistry.from_lists(tools=[tool]),
            hooks=[_recorder(errors, HookType.ERROR)],
            planner=FixedPlanner(Action(kind=ActionKind.TOOL_USE, target="explode")),
            config=LoopConfig(max_iterations=5),
        )

        result = await orch.run("break things")

        assert result.success is True
        assert result.terminated_early is True
        assert result.iterations_used == 1
        assert len(errors) == 1
        assert "database gone" in result.reason

    async def test_critical_attribute_on_foreign_exception(self) -> None:
        class Fatal(RuntimeError):
            critical = True

        def explode(params: dict) -> None:
            raise Fatal("boom")

        tool = FunctionTool("explode", "Fails hard", handler=explode)
        orch = Orchestrator(
            ScriptedProvider(default="try"),
            registry=CapabilityRegistry.from_lists(tools=[tool]),
            planner=FixedPlanner(Action(kind=ActionKind.TOOL_USE, target="explode")),
            config=LoopConfig(max_iterations=5),
        )

        result = await orch.run("break things")

        assert result.iterations_used == 1
        assert result.terminated_early is True

    async def test_failing_error_hook_does_not_mask_error(self) -> None:
        def broken(ctx: HookContext) -> HookResult:
            raise RuntimeError("hook broke")

        orch = Orchestrator(
            ScriptedProvider(default="try"),
            hooks=[Hook(name="broken", type=HookType.ERROR, handler=broken)],
            planner=FixedPlanner(Action(kind=ActionKind.TOOL_USE, target="missing")),
            config=LoopConfig(max_iterations=2),
        )

        result = await orch.run("g")

        assert result.iterations_used == 2
        assert any("Error hook failed: hook broke" in line for line in result.log)

    async def test_provider_timeout_is_recoverable(self) -> None:
        class SlowProvider:
            async def complete(self, system: str, prompt: str, max_tokens: int) -> str:
                await asyncio.sleep(1)
                return "GOAL_ACHIEVED"

        orch = Orchestrator(
            SlowProvider(), config=LoopConfig(max_iterations=2, call_timeout=0.01)
        )

        result = await orch.run("g")

        assert result.iterations_used == 2
        assert result.goal_achieved is False
        assert any("timed out" in line for line in result.log)


# ---------------------------------------------------------------------------
# Logging and events
# ---------------------------------------------------------------------------


class TestRunLog:
    def test_entries_are_timestamped(self) -> None:
        log = RunLog()
        log("hello")
        assert log.lines[0].startswith("[")
        assert log.lines[0].endswith("] hello")

    def test_disabled_log_collects_nothing(self) -> None:
        log = RunLog(enabled=False)
        log("hello")
        assert log.lines == []

    async def test_run_without_logging(self) -> None:
        orch = Orchestrator(
            ScriptedProvider.of("GOAL_ACHIEVED"),
            config=LoopConfig(enable_logging=False),
        )
        result = await orch.run("g")
        assert result.log == []


class TestWireEvents:
    async def test_events_published_in_order(self) -> None:
        wire = Wire()
        queue = wire.subscribe()
        orch = Orchestrator(
            ScriptedProvider.of("echo", LEARNED),
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
            wire=wire,
        )

        await orch.run("echo")

        types = []
        while not queue.empty():
            types.append(queue.get_nowait().type)
        assert types == [
            EventType.RUN_BEGIN,
            EventType.ITERATION_BEGIN,
            EventType.OBSERVE,
            EventType.THINK,
            EventType.ACT,
            EventType.LEARN,
            EventType.RUN_END,
        ]

    async def test_veto_event(self) -> None:
        wire = Wire()
        queue = wire.subscribe()
        orch = Orchestrator(
            ScriptedProvider(default="try"),
            registry=_echo_registry(),
            hooks=[_recorder([], HookType.GUARD_RAIL, allowed=False)],
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=1),
            wire=wire,
        )

        await orch.run("g")

        events = []
        while not queue.empty():
            events.append(queue.get_nowait())
        veto = [e for e in events if e.type == EventType.VETO]
        assert veto[0].data["hook"] == "rec-guard-rail"
        assert veto[0].data["action"]["target"] == "echo"


# ---------------------------------------------------------------------------
# from_config
# ---------------------------------------------------------------------------


class TestFromConfig:
    async def test_guard_rails_installed_when_enabled(self) -> None:
        config = ActloopConfig()
        config.loop.enable_guard_rails = True
        config.loop.enable_human_in_loop = True
        config.loop.max_iterations = 1

        orch = Orchestrator.from_config(
            ScriptedProvider.of("GOAL_ACHIEVED"),
            config,
            tools=[FunctionTool("echo", "Echo", handler=lambda p: p)],
            shared=SharedHookState(),
        )

        names = [h.name for h in orch.hooks.hooks]
        assert names[:4] == ["content-safety", "rate-limiting", "data-privacy", "human-approval"]
        assert "audit-trail" in names
        assert "echo" in orch.registry

    def test_no_default_hooks_when_disabled(self) -> None:
        config = ActloopConfig()
        config.loop.enable_logging = False

        orch = Orchestrator.from_config(ScriptedProvider(), config)

        assert len(orch.hooks) == 0

    async def test_concurrent_runs_share_one_orchestrator(self) -> None:
        orch = Orchestrator(
            ScriptedProvider(default="still working"),
            registry=_echo_registry(),
            planner=FixedPlanner(_echo_action()),
            config=LoopConfig(max_iterations=2),
        )

        first, second = await asyncio.gather(orch.run("a"), orch.run("b"))

        assert first.iterations_used == second.iterations_used == 2
        assert len(first.memory) == len(second.memory) == 2

