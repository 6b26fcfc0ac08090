"""Tests for actloop.agent.planner."""

from __future__ import annotations

from actloop.agent.planner import ActionPlanner, FixedPlanner, IntentPlanner, RespondPlanner
from actloop.agent.state import Action, ActionIntent, ActionKind, RunState, Thought
from actloop.capability.base import FunctionSkill
from actloop.capability.registry import CapabilityRegistry


def _registry_with_auto_skill() -> CapabilityRegistry:
    skill = FunctionSkill(
        "qualify",
        "Qualify a lead",
        handler=lambda s: None,
        auto_invoke=True,
        triggers=["lead"],
    )
    return CapabilityRegistry.from_lists(skills=[skill])


class TestRespondPlanner:
    async def test_wraps_reasoning(self) -> None:
        action = await RespondPlanner().plan(Thought(reasoning="hello"), RunState())
        assert action.kind is ActionKind.RESPOND
        assert action.target == "user"
        assert action.parameters == {"message": "hello"}

    def test_is_an_action_planner(self) -> None:
        assert isinstance(RespondPlanner(), ActionPlanner)


class TestFixedPlanner:
    async def test_returns_copies(self) -> None:
        template = Action(kind=ActionKind.TOOL_USE, target="echo", parameters={"x": 1})
        planner = FixedPlanner(template)
        first = await planner.plan(Thought(), RunState())
        first.parameters["x"] = 2
        second = await planner.plan(Thought(), RunState())
        assert second.parameters == {"x": 1}


class TestIntentPlanner:
    async def test_uses_intent(self) -> None:
        thought = Thought(
            reasoning="read it",
            confidence=0.6,
            intent=ActionIntent(
                kind=ActionKind.TOOL_USE, target="read_file", parameters={"path": "a"}
            ),
        )
        action = await IntentPlanner().plan(thought, RunState())
        assert action.kind is ActionKind.TOOL_USE
        assert action.target == "read_file"
        assert action.parameters == {"path": "a"}
        assert action.metadata == {"planner": "intent", "confidence": 0.6}

    async def test_auto_invokes_matching_skill(self) -> None:
        planner = IntentPlanner(_registry_with_auto_skill())
        action = await planner.plan(Thought(reasoning="A new lead came in"), RunState())
        assert action.kind is ActionKind.SKILL_INVOKE
        assert action.target == "qualify"

    async def test_intent_beats_auto_invoke(self) -> None:
        planner = IntentPlanner(_registry_with_auto_skill())
        thought = Thought(
            reasoning="lead",
            intent=ActionIntent(kind=ActionKind.RESPOND, target="user"),
        )
        action = await planner.plan(thought, RunState())
        assert action.kind is ActionKind.RESPOND

    async def test_falls_back_to_respond(self) -> None:
        planner = IntentPlanner(_registry_with_auto_skill())
        action = await planner.plan(Thought(reasoning="nothing relevant"), RunState())
        assert action.kind is ActionKind.RESPOND
        assert action.parameters == {"message": "nothing relevant"}

    async def test_custom_fallback(self) -> None:
        fixed = Action(kind=ActionKind.TOOL_USE, target="think")
        planner = IntentPlanner(fallback=FixedPlanner(fixed))
        action = await planner.plan(Thought(reasoning="hmm"), RunState())
        assert action.target == "think"
