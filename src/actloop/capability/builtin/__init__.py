"""Built-in general-purpose tools."""

from __future__ import annotations

from actloop.capability.base import BaseTool
from actloop.capability.builtin.list_directory import ListDirectoryTool
from actloop.capability.builtin.read_file import ReadFileTool
from actloop.capability.builtin.search_text import SearchTextTool
from actloop.capability.builtin.think import ThinkTool
from actloop.capability.builtin.write_file import WriteFileTool


def builtin_tools(cwd: str | None = None) -> list[BaseTool]:
    """Instantiate every builtin tool rooted at ``cwd``."""
    return [
        ReadFileTool(cwd=cwd),
        WriteFileTool(cwd=cwd),
        ListDirectoryTool(cwd=cwd),
        SearchTextTool(cwd=cwd),
        ThinkTool(),
    ]


__all__ = [
    "ReadFileTool",
    "WriteFileTool",
    "ListDirectoryTool",
    "SearchTextTool",
    "ThinkTool",
    "builtin_tools",
]
