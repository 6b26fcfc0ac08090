"""Search text tool — grep-like literal search in a file or directory tree."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

from actloop.capability.base import BaseTool, ToolError, ToolOk, ToolResult
from actloop.capability.truncation import truncate_output

MAX_MATCHES = 200


class SearchTextParams(BaseModel):
    pattern: str = Field(min_length=1, description="Literal text to search for.")
    path: str = Field(default=".", description="File or directory to search in.")
    recursive: bool = Field(
        default=False, description="Descend into subdirectories when path is a directory."
    )


class SearchTextTool(BaseTool[SearchTextParams]):
    """Find lines containing a literal pattern."""

    name = "search_text"
    description = (
        "Search for a literal text pattern in a file, or in the files of a "
        "directory (optionally recursive). Returns path:line: text matches."
    )
    category = "builtin"
    param_model = SearchTextParams

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd or os.getcwd()

    async def execute(self, params: SearchTextParams) -> ToolResult:
        root = params.path
        if not os.path.isabs(root):
            root = os.path.join(self._cwd, root)

        if os.path.isfile(root):
            files = [root]
        elif os.path.isdir(root):
            files = list(_walk(root, params.recursive))
        else:
            return ToolError(output=f"Path not found: {root}")

        matches: list[str] = []
        for file_path in files:
            try:
                with open(file_path, "r", errors="replace") as f:
                    for lineno, line in enumerate(f, start=1):
                        if params.pattern in line:
                            matches.append(f"{file_path}:{lineno}: {line.rstrip()}")
                            if len(matches) >= MAX_MATCHES:
                                break
            except OSError:
                continue
            if len(matches) >= MAX_MATCHES:
                matches.append(f"[stopped after {MAX_MATCHES} matches]")
                break

        if not matches:
            return ToolOk(output="No matches.", brief=f"0 matches for {params.pattern!r}")

        return ToolOk(
            output=truncate_output("\n".join(matches)),
            brief=f"{len(matches)} matches for {params.pattern!r}",
        )


def _walk(root: str, recursive: bool):
    if not recursive:
        for name in sorted(os.listdir(root)):
            full = os.path.join(root, name)
            if os.path.isfile(full):
                yield full
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for name in sorted(filenames):
            yield os.path.join(dirpath, name)
