"""Output truncation — bound builtin tool output before it reaches a prompt."""

from __future__ import annotations

import os
import tempfile

MAX_LINES = 2000
MAX_BYTES = 50 * 1024  # 50KB

OUTPUT_DIR = "~/.actloop/tool-output"


def truncate_output(
    text: str,
    max_lines: int = MAX_LINES,
    max_bytes: int = MAX_BYTES,
    save_full: bool = True,
) -> str:
    """Truncate tool output to fit within a prompt budget.

    If the output exceeds limits, the full output is saved to a temp file
    and the truncated version includes a note about where to find it.

    Args:
        text: Raw tool output.
        max_lines: Maximum number of lines to keep.
        max_bytes: Maximum bytes to keep.
        save_full: Whether to save full output to a temp file when truncating.

    Returns:
        Truncated output string.
    """
    if not text:
        return text

    lines = text.split("\n")
    byte_count = len(text.encode("utf-8", errors="replace"))

    if len(lines) <= max_lines and byte_count <= max_bytes:
        return text

    full_path = _save_to_temp(text) if save_full else None

    # Keep the head: files and listings are read top-down
    if len(lines) > max_lines:
        kept = lines[:max_lines]
        skipped = len(lines) - max_lines
    else:
        kept = lines
        skipped = 0

    result = "\n".join(kept)
    result_bytes = result.encode("utf-8", errors="replace")
    if len(result_bytes) > max_bytes:
        # Cut at a safe UTF-8 boundary
        result = result_bytes[:max_bytes].decode("utf-8", errors="ignore")
        skipped_bytes = byte_count - max_bytes
    else:
        skipped_bytes = 0

    notice_parts = []
    if skipped > 0:
        notice_parts.append(f"{skipped} lines skipped")
    if skipped_bytes > 0:
        notice_parts.append(f"{skipped_bytes} bytes skipped")

    notice = f"[Output truncated: {', '.join(notice_parts)}. Total: {len(lines)} lines, {byte_count} bytes]"
    if full_path:
        notice += f"\n[Full output saved to: {full_path}]"

    return f"{result}\n{notice}"


def _save_to_temp(text: str) -> str:
    """Save full output to a temp file and return the path."""
    out_dir = os.path.expanduser(OUTPUT_DIR)
    os.makedirs(out_dir, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="actloop-", suffix=".txt", dir=out_dir)
    with os.fdopen(fd, "w") as f:
        f.write(text)
    return path


def sanitize_text(text: str) -> str:
    """Remove control characters that would garble a prompt.

    Keeps printable chars, tabs, newlines, and carriage returns.
    """
    cleaned = []
    for ch in text:
        cp = ord(ch)
        if ch in ("\t", "\n", "\r"):
            cleaned.append(ch)
        elif cp >= 32 and cp not in range(0x7F, 0xA0):
            if cp not in range(0xFFF9, 0xFFFC):
                cleaned.append(ch)
    return "".join(cleaned)
