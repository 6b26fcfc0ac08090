"""Run state and the values that flow through one loop iteration."""

from __future__ import annotations

import dataclasses
import enum
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from actloop.agent.memory import MemoryStore

GOAL_ACHIEVED = "GOAL_ACHIEVED"
CONTINUE = "continue"


def _gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _new_memory() -> MemoryStore:
    from actloop.agent.memory import MemoryStore

    return MemoryStore()


def to_jsonable(obj: Any) -> Any:
    """Convert run values (dataclasses, enums, pydantic models) to plain JSON data.

    Unknown objects fall back to ``str(obj)`` so that prompts and audit
    entries never fail to serialize.
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    if hasattr(obj, "to_list"):
        return [to_jsonable(v) for v in obj.to_list()]
    return str(obj)


def dumps(obj: Any, indent: int | None = None) -> str:
    """JSON-encode any run value via ``to_jsonable``."""
    return json.dumps(to_jsonable(obj), indent=indent, ensure_ascii=False)


class Phase(enum.Enum):
    """Where in observe -> think -> act -> learn the run currently is."""

    OBSERVE = "observe"
    THINK = "think"
    ACT = "act"
    LEARN = "learn"


class ObservationKind(enum.Enum):
    USER_INPUT = "user_input"
    TOOL_RESULT = "tool_result"
    SUBAGENT_RESULT = "subagent_result"
    ENVIRONMENT = "environment"


class ActionKind(enum.Enum):
    TOOL_USE = "tool_use"
    SKILL_INVOKE = "skill_invoke"
    SUBAGENT_SPAWN = "subagent_spawn"
    RESPOND = "respond"


@dataclass
class MemoryRecord:
    """One entry in the bounded reflection log."""

    content: str = ""  # serialized Learning
    phase: Phase = Phase.LEARN
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: _gen_id("mem"))
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "phase": self.phase.value,
            "content": self.content,
            "metadata": self.metadata,
        }


@dataclass
class RunState:
    """Mutable state of a single run.

    Owned by exactly one Orchestrator run and never shared. ``timers`` is
    scratch space for hooks that need per-run bookkeeping without leaking
    into ``context``.
    """

    goal: str = ""
    phase: Phase = Phase.OBSERVE
    iteration: int = 0
    context: dict[str, Any] = field(default_factory=dict)
    memory: MemoryStore = field(default_factory=_new_memory)
    timers: dict[str, float] = field(default_factory=dict)


@dataclass
class Observation:
    """What the agent perceives at the start of an iteration."""

    kind: ObservationKind = ObservationKind.ENVIRONMENT
    content: Any = None
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionIntent:
    """Structured action request parsed out of a reasoning reply."""

    kind: ActionKind
    target: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class Thought:
    """The parsed outcome of the Think phase."""

    reasoning: str = ""
    next_action: str = CONTINUE
    confidence: float = 0.8
    alternatives: list[str] = field(default_factory=list)
    intent: ActionIntent | None = None

    @property
    def is_terminal(self) -> bool:
        return self.next_action == GOAL_ACHIEVED


@dataclass
class Action:
    """The single thing the agent does in an iteration."""

    kind: ActionKind
    target: str
    parameters: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Identifier used by hooks to group actions (kind + target)."""
        return f"{self.kind.value}_{self.target}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.kind.value,
            "target": self.target,
            "parameters": self.parameters,
        }
        if self.metadata:
            data["metadata"] = self.metadata
        return data


class Learning(BaseModel):
    """Reflection produced by the Learn phase.

    Validated from the provider's JSON, which uses camelCase for
    ``newKnowledge``; both spellings are accepted.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = True
    insights: list[str] = Field(default_factory=list)
    adjustments: list[str] = Field(default_factory=list)
    new_knowledge: dict[str, Any] | None = Field(default=None, alias="newKnowledge")

    @classmethod
    def fallback(cls) -> Learning:
        return cls(success=True, insights=["Action completed"], adjustments=[])


@dataclass
class RunResult:
    """What ``Orchestrator.run`` hands back to the caller.

    ``success`` is always True; inspect ``terminated_early`` and ``reason``
    (or ``log``) to tell a critical stop from a normal finish.
    """

    success: bool
    result: Any
    iterations_used: int
    log: list[str] = field(default_factory=list)
    memory: list[MemoryRecord] = field(default_factory=list)
    goal_achieved: bool = False
    terminated_early: bool = False
    reason: str = ""
