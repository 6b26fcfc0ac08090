"""Agent system — run state, memory, planners, and the loop."""

from actloop.agent.state import (
    Action,
    ActionIntent,
    ActionKind,
    Learning,
    MemoryRecord,
    Observation,
    ObservationKind,
    Phase,
    RunResult,
    RunState,
    Thought,
)
from actloop.agent.memory import MemoryStore
from actloop.agent.planner import ActionPlanner, FixedPlanner, IntentPlanner, RespondPlanner
from actloop.agent.loop import IterationOutcome, Orchestrator, RunLog

__all__ = [
    "Action",
    "ActionIntent",
    "ActionKind",
    "Learning",
    "MemoryRecord",
    "Observation",
    "ObservationKind",
    "Phase",
    "RunResult",
    "RunState",
    "Thought",
    "MemoryStore",
    "ActionPlanner",
    "FixedPlanner",
    "IntentPlanner",
    "RespondPlanner",
    "IterationOutcome",
    "Orchestrator",
    "RunLog",
]
