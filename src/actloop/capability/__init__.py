"""Capability system — tools, skills, sub-workers, registry, and dispatch."""

from actloop.capability.base import (
    BaseTool,
    Capability,
    FunctionSkill,
    FunctionSubWorker,
    FunctionTool,
    Skill,
    SubWorker,
    ToolError,
    ToolOk,
    ToolResult,
)
from actloop.capability.dispatcher import ActionDispatcher
from actloop.capability.registry import CapabilityRegistry

__all__ = [
    "BaseTool",
    "Capability",
    "FunctionSkill",
    "FunctionSubWorker",
    "FunctionTool",
    "Skill",
    "SubWorker",
    "ToolError",
    "ToolOk",
    "ToolResult",
    "ActionDispatcher",
    "CapabilityRegistry",
]
