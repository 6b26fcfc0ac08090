"""Write file tool."""

from __future__ import annotations

import os

import aiofiles
from pydantic import BaseModel, Field

from actloop.capability.base import BaseTool, ToolError, ToolOk, ToolResult


class WriteFileParams(BaseModel):
    path: str = Field(description="Path to the file to write.")
    content: str = Field(description="Content to write to the file.")


class WriteFileTool(BaseTool[WriteFileParams]):
    """Write content to a file, creating directories as needed."""

    name = "write_file"
    description = (
        "Write content to a file. Creates the file and parent directories if they "
        "don't exist. Overwrites existing content."
    )
    category = "builtin"
    param_model = WriteFileParams

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd or os.getcwd()

    async def execute(self, params: WriteFileParams) -> ToolResult:
        path = params.path
        if not os.path.isabs(path):
            path = os.path.join(self._cwd, path)

        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            async with aiofiles.open(path, "w") as f:
                await f.write(params.content)
        except OSError as e:
            return ToolError(output=f"Error writing file: {e}")

        return ToolOk(
            output=f"Wrote {len(params.content)} characters to {path}",
            brief=f"Wrote {path}",
        )
