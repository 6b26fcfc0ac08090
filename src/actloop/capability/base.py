"""Capability classes: tools, skills, and sub-workers.

Every capability shares one contract, ``await invoke(payload)``. The shape
of ``payload`` depends on the variant and is chosen by the dispatcher from
the action's kind:

- Tool: the action's parameter dict, validated against ``param_model``.
- Skill: the whole ``RunState``.
- SubWorker: a ``(task, context)`` pair.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from actloop.agent.state import ActionKind
from actloop.errors import ToolValidationError

if TYPE_CHECKING:
    from actloop.agent.state import RunState

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


async def _call(handler: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async handler and return its result."""
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass
class ToolResult:
    """Base result from a builtin tool execution."""

    output: str = ""
    brief: str = ""  # Short description for display
    is_error: bool = False


@dataclass
class ToolOk(ToolResult):
    """Successful tool result."""

    is_error: bool = False


@dataclass
class ToolError(ToolResult):
    """Failed tool result."""

    is_error: bool = True


class Capability(ABC):
    """A named, invokable unit of external behavior."""

    kind: ClassVar[ActionKind]
    name: str = ""
    description: str = ""

    @abstractmethod
    async def invoke(self, payload: Any) -> Any:
        """Run the capability with its variant-specific payload."""
        ...

    def describe(self) -> str:
        """One line for the reasoning provider's system preamble."""
        return f"- {self.name}: {self.description}"


class BaseTool(Capability, Generic[T]):
    """Base class for tools.

    Tools see only their own parameters. Each tool declares them as a
    Pydantic model (the type parameter T); without one, the raw dict is
    passed through.

    Usage:
        class MyParams(BaseModel):
            path: str
            offset: int = 0

        class MyTool(BaseTool[MyParams]):
            name = "my_tool"
            description = "Does something useful"
            param_model = MyParams

            async def execute(self, params: MyParams) -> ToolResult:
                return ToolOk(output="done")
    """

    kind: ClassVar[ActionKind] = ActionKind.TOOL_USE
    category: str = "custom"  # "builtin" | "mcp" | "custom"
    param_model: type[BaseModel] | None = None

    async def invoke(self, payload: dict[str, Any]) -> Any:
        params = self.validate(payload)
        return await self.execute(params)  # type: ignore[arg-type]

    def validate(self, arguments: dict[str, Any]) -> Any:
        """Validate ``arguments`` against ``param_model``.

        Raises:
            ToolValidationError: if the arguments do not fit the schema.
        """
        if self.param_model is None:
            return arguments
        try:
            return self.param_model.model_validate(arguments)
        except ValidationError as e:
            raise ToolValidationError(self.name, e) from e

    @abstractmethod
    async def execute(self, params: T) -> Any:
        """Execute the tool with validated parameters."""
        ...

    def parameter_schema(self) -> dict[str, Any]:
        if self.param_model is None:
            return {}
        schema = self.param_model.model_json_schema()
        # Strip the title and $defs that Pydantic adds
        schema.pop("title", None)
        schema.pop("$defs", None)
        return schema

    def describe(self) -> str:
        props = self.parameter_schema().get("properties", {})
        if not props:
            return super().describe()
        return f"{super().describe()} (parameters: {', '.join(props)})"


class FunctionTool(BaseTool[BaseModel]):
    """A tool built from a plain (sync or async) function.

    The handler receives the validated parameters as a dict.
    """

    def __init__(
        self,
        name: str,
        description: str,
        handler: Callable[[dict[str, Any]], Any],
        param_model: type[BaseModel] | None = None,
        category: str = "custom",
    ) -> None:
        self.name = name
        self.description = description
        self.param_model = param_model
        self.category = category
        self._handler = handler

    async def execute(self, params: Any) -> Any:
        if isinstance(params, BaseModel):
            params = params.model_dump()
        return await _call(self._handler, params)


class Skill(Capability):
    """Domain expertise that works on the whole run state.

    Unlike tools, skills may read and derive from ``RunState.context``.
    Skills with ``auto_invoke`` set are picked by the planner when one of
    their ``triggers`` shows up in the agent's reasoning.
    """

    kind: ClassVar[ActionKind] = ActionKind.SKILL_INVOKE
    domain: str = "general"
    auto_invoke: bool = False
    triggers: tuple[str, ...] = ()

    async def invoke(self, payload: RunState) -> Any:
        return await self.execute(payload)

    @abstractmethod
    async def execute(self, state: RunState) -> Any: ...

    def matches(self, text: str) -> bool:
        """True if any trigger keyword appears in ``text`` (case-insensitive)."""
        lowered = text.lower()
        return any(t.lower() in lowered for t in self.triggers if t)

    def describe(self) -> str:
        return f"- {self.name} [{self.domain}]: {self.description}"


class FunctionSkill(Skill):
    """A skill built from a plain (sync or async) function of the run state."""

    def __init__(
        self,
        name: str,
        description: str,
        handler: Callable[[RunState], Any],
        domain: str = "general",
        auto_invoke: bool = False,
        triggers: list[str] | None = None,
    ) -> None:
        self.name = name
        self.description = description
        self.domain = domain
        self.auto_invoke = auto_invoke
        self.triggers = tuple(triggers or ())
        self._handler = handler

    async def execute(self, state: RunState) -> Any:
        return await _call(self._handler, state)


class SubWorker(Capability):
    """A delegated task executor.

    Isolated workers must never see the live ``RunState``; the dispatcher
    hands them a copy of the relevant context only.
    """

    kind: ClassVar[ActionKind] = ActionKind.SUBAGENT_SPAWN
    isolated: bool = True
    worker_type: str = "custom"  # "code-reviewer" | "test-runner" | "researcher" | "custom"

    async def invoke(self, payload: tuple[str, dict[str, Any]]) -> Any:
        task, context = payload
        return await self.execute(task, context)

    @abstractmethod
    async def execute(self, task: str, context: dict[str, Any]) -> Any: ...


class FunctionSubWorker(SubWorker):
    """A sub-worker built from a plain (sync or async) ``(task, context)`` function."""

    def __init__(
        self,
        name: str,
        description: str,
        handler: Callable[[str, dict[str, Any]], Any],
        isolated: bool = True,
        worker_type: str = "custom",
    ) -> None:
        self.name = name
        self.description = description
        self.isolated = isolated
        self.worker_type = worker_type
        self._handler = handler

    async def execute(self, task: str, context: dict[str, Any]) -> Any:
        return await _call(self._handler, task, context)
