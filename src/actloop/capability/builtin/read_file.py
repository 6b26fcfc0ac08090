"""Read file tool."""

from __future__ import annotations

import os

import aiofiles
from pydantic import BaseModel, Field

from actloop.capability.base import BaseTool, ToolError, ToolOk, ToolResult
from actloop.capability.truncation import sanitize_text, truncate_output


class ReadFileParams(BaseModel):
    path: str = Field(description="Absolute or relative path to the file to read.")
    offset: int = Field(
        default=0, ge=0, description="Line number to start reading from (0-indexed)."
    )
    limit: int = Field(default=2000, gt=0, description="Maximum number of lines to read.")


class ReadFileTool(BaseTool[ReadFileParams]):
    """Read file contents with optional offset and limit."""

    name = "read_file"
    description = (
        "Read the contents of a file. Returns numbered lines. "
        "Use offset and limit for large files."
    )
    category = "builtin"
    param_model = ReadFileParams

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd or os.getcwd()

    async def execute(self, params: ReadFileParams) -> ToolResult:
        path = params.path
        if not os.path.isabs(path):
            path = os.path.join(self._cwd, path)

        if not os.path.exists(path):
            return ToolError(output=f"File not found: {path}")
        if os.path.isdir(path):
            return ToolError(output=f"Is a directory: {path}. Use list_directory.")

        try:
            async with aiofiles.open(path, "r", errors="replace") as f:
                all_lines = await f.readlines()
        except PermissionError:
            return ToolError(output=f"Permission denied: {path}")
        except OSError as e:
            return ToolError(output=f"Error reading file: {e}")

        total = len(all_lines)
        start = min(params.offset, total)
        end = min(start + params.limit, total)

        numbered = [
            f"{i}: {sanitize_text(line.rstrip())}"
            for i, line in enumerate(all_lines[start:end], start=start + 1)
        ]

        result = "\n".join(numbered)
        if end < total:
            result += f"\n\n[{total - end} more lines. Use offset={end} to continue.]"

        return ToolOk(
            output=truncate_output(result),
            brief=f"Read {path} ({end - start}/{total} lines)",
        )
