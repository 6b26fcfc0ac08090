"""List directory tool."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

from actloop.capability.base import BaseTool, ToolError, ToolOk, ToolResult
from actloop.capability.truncation import truncate_output


class ListDirectoryParams(BaseModel):
    path: str = Field(default=".", description="Directory to list.")


class ListDirectoryTool(BaseTool[ListDirectoryParams]):
    """List files and directories with their sizes."""

    name = "list_directory"
    description = "List files and directories in a given path, with sizes."
    category = "builtin"
    param_model = ListDirectoryParams

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd or os.getcwd()

    async def execute(self, params: ListDirectoryParams) -> ToolResult:
        path = params.path
        if not os.path.isabs(path):
            path = os.path.join(self._cwd, path)

        if not os.path.isdir(path):
            return ToolError(output=f"Not a directory: {path}")

        try:
            entries = sorted(os.scandir(path), key=lambda e: e.name)
        except PermissionError:
            return ToolError(output=f"Permission denied: {path}")

        lines = []
        for entry in entries:
            if entry.is_dir():
                lines.append(f"{entry.name}/")
            else:
                try:
                    size = entry.stat().st_size
                except OSError:
                    size = -1
                lines.append(f"{entry.name} ({size} bytes)")

        return ToolOk(
            output=truncate_output("\n".join(lines)),
            brief=f"Listed {len(lines)} entries in {os.path.basename(path) or path}",
        )
