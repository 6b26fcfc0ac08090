"""Think tool — scratchpad for reasoning without acting."""

from __future__ import annotations

from pydantic import BaseModel, Field

from actloop.capability.base import BaseTool, ToolOk, ToolResult


class ThinkParams(BaseModel):
    thought: str = Field(
        description=(
            "Your internal reasoning. Use this to plan or work through a "
            "problem before taking a real action."
        )
    )


class ThinkTool(BaseTool[ThinkParams]):
    """Scratchpad for internal reasoning.

    No side effects. The thought comes back as the result, so the Learn
    phase sees it and it lands in memory.
    """

    name = "think"
    description = (
        "Think through a problem and plan your approach. "
        "No side effects, just records your reasoning."
    )
    category = "builtin"
    param_model = ThinkParams

    async def execute(self, params: ThinkParams) -> ToolResult:
        return ToolOk(output=params.thought, brief="Thinking...")
