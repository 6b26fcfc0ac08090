"""Tests for actloop.capability.truncation."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from actloop.capability import truncation
from actloop.capability.truncation import (
    MAX_BYTES,
    MAX_LINES,
    sanitize_text,
    truncate_output,
)


@pytest.fixture
def output_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    out = tmp_path / "tool-output"
    monkeypatch.setattr(truncation, "OUTPUT_DIR", str(out))
    return out


# ---------------------------------------------------------------------------
# truncate_output
# ---------------------------------------------------------------------------


class TestTruncateOutput:
    def test_empty_string(self) -> None:
        assert truncate_output("") == ""

    def test_within_limits(self) -> None:
        text = "hello\nworld\n"
        assert truncate_output(text) == text

    def test_over_line_limit_keeps_head(self) -> None:
        lines = [f"line {i}" for i in range(MAX_LINES + 500)]
        result = truncate_output("\n".join(lines), save_full=False)
        assert result.startswith("line 0\n")
        assert f"line {MAX_LINES - 1}\n" in result
        assert f"line {MAX_LINES + 499}" not in result
        assert "500 lines skipped" in result
        assert "Full output saved" not in result

    def test_over_byte_limit(self) -> None:
        text = "x" * (MAX_BYTES + 1000)
        result = truncate_output(text, save_full=False)
        assert len(result.encode()) <= MAX_BYTES + 500
        assert "1000 bytes skipped" in result

    def test_multibyte_cut_stays_valid(self) -> None:
        text = "é" * 100
        result = truncate_output(text, max_bytes=51, save_full=False)
        # Half a character would have been dropped, not mangled
        assert result.split("\n", 1)[0] == "é" * 25

    def test_save_full_creates_file(self, output_dir: Path) -> None:
        lines = [f"line {i}" for i in range(MAX_LINES + 100)]
        text = "\n".join(lines)
        result = truncate_output(text, save_full=True)

        marker = "[Full output saved to: "
        assert marker in result
        saved = result.split(marker, 1)[1].rstrip("]")
        assert os.path.basename(saved).startswith("actloop-")
        assert Path(saved).parent == output_dir
        assert Path(saved).read_text() == text

    def test_custom_limits(self) -> None:
        text = "a\nb\nc\nd\ne\nf\n"
        result = truncate_output(text, max_lines=3, save_full=False)
        assert result.startswith("a\nb\nc\n")
        assert "4 lines skipped" in result

    def test_exact_line_limit(self) -> None:
        """Exactly at the limit should not truncate."""
        lines = [f"line {i}" for i in range(MAX_LINES)]
        text = "\n".join(lines)
        assert truncate_output(text) == text


# ---------------------------------------------------------------------------
# sanitize_text
# ---------------------------------------------------------------------------


class TestSanitizeText:
    def test_clean_text(self) -> None:
        assert sanitize_text("hello world") == "hello world"

    def test_preserves_whitespace_controls(self) -> None:
        assert sanitize_text("a\tb\nc\rd") == "a\tb\nc\rd"

    def test_strips_null_and_bell(self) -> None:
        assert sanitize_text("a\x00b\x07c") == "abc"

    def test_strips_c1_control(self) -> None:
        assert sanitize_text("a\x7fb") == "ab"
        assert sanitize_text("a\x80b") == "ab"
        assert sanitize_text("a\x9fb") == "ab"

    def test_keeps_normal_unicode(self) -> None:
        assert sanitize_text("café") == "café"
        assert sanitize_text("日本語") == "日本語"

    def test_strips_format_chars(self) -> None:
        assert sanitize_text("a\ufff9b") == "ab"
        assert sanitize_text("a\ufffbb") == "ab"

    def test_empty_string(self) -> None:
        assert sanitize_text("") == ""
