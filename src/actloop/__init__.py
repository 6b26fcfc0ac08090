"""actloop — an observe, think, act, learn agent loop with vetoable hooks."""

# The agent package goes first: capability and hook modules import its
# state types, and the loop in turn imports them.
from actloop.agent import Action, ActionKind, Orchestrator, RunResult, RunState
from actloop.capability import (
    ActionDispatcher,
    CapabilityRegistry,
    FunctionSkill,
    FunctionSubWorker,
    FunctionTool,
)
from actloop.config import ActloopConfig
from actloop.errors import ActloopError, CriticalError
from actloop.hooks import Hook, HookPipeline, HookResult, HookType

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ActionKind",
    "Orchestrator",
    "RunResult",
    "RunState",
    "ActionDispatcher",
    "CapabilityRegistry",
    "FunctionSkill",
    "FunctionSubWorker",
    "FunctionTool",
    "ActloopConfig",
    "ActloopError",
    "CriticalError",
    "Hook",
    "HookPipeline",
    "HookResult",
    "HookType",
]
