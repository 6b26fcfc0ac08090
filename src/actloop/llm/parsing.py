"""Turn semi-structured provider replies into Thoughts and Learnings.

Replies are free text. Structured data, when present, is the first
balanced ``{...}`` block anywhere in the text. Every parser here falls
back to a documented default instead of raising.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from actloop.agent.state import (
    CONTINUE,
    GOAL_ACHIEVED,
    ActionIntent,
    ActionKind,
    Learning,
    Thought,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8

_CONFIDENCE_RE = re.compile(r"(?im)^\s*confidence\s*[:=]\s*([01](?:\.\d+)?)\s*$")
_ALTERNATIVES_RE = re.compile(r"(?im)^\s*alternatives\s*:\s*$")
_BULLET_RE = re.compile(r"^\s*(?:[-*]|\d+[.)])\s+(.*\S)\s*$")

# Spellings the provider tends to use for action kinds
_KIND_ALIASES = {
    "tool": ActionKind.TOOL_USE,
    "tool_use": ActionKind.TOOL_USE,
    "skill": ActionKind.SKILL_INVOKE,
    "skill_invoke": ActionKind.SKILL_INVOKE,
    "subagent": ActionKind.SUBAGENT_SPAWN,
    "subagent_spawn": ActionKind.SUBAGENT_SPAWN,
    "sub_worker": ActionKind.SUBAGENT_SPAWN,
    "respond": ActionKind.RESPOND,
    "response": ActionKind.RESPOND,
}


def extract_json_block(text: str) -> str | None:
    """Return the first balanced brace-delimited substring of ``text``.

    Braces inside JSON string literals are ignored. Returns None if no
    ``{`` starts a balanced block.
    """
    start = text.find("{")
    while start != -1:
        end = _match_brace(text, start)
        if end is not None:
            return text[start : end + 1]
        start = text.find("{", start + 1)
    return None


def _match_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def parse_json_block(text: str) -> dict[str, Any] | None:
    """Extract and decode the first JSON object in ``text``, or None."""
    block = extract_json_block(text)
    if block is None:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        logger.debug("First brace block is not valid JSON: %s", block[:200])
        return None
    return data if isinstance(data, dict) else None


def parse_intent(data: dict[str, Any] | None) -> ActionIntent | None:
    """Read an action intent from ``{"action": {...}}`` or a bare action dict."""
    if not data:
        return None
    raw = data.get("action", data)
    if not isinstance(raw, dict):
        return None

    kind_name = str(raw.get("type") or raw.get("kind") or "").strip().lower()
    kind = _KIND_ALIASES.get(kind_name)
    target = raw.get("target") or raw.get("name")
    if kind is None or not target:
        return None

    params = raw.get("parameters", raw.get("params", {}))
    if not isinstance(params, dict):
        params = {"value": params}
    return ActionIntent(kind=kind, target=str(target), parameters=params)


def parse_thought(text: str) -> Thought:
    """Parse a Think reply.

    The whole reply is the reasoning. ``GOAL_ACHIEVED`` anywhere makes the
    thought terminal. Optional extras: a ``CONFIDENCE: 0.x`` line, an
    ``ALTERNATIVES:`` bullet list, and a JSON action intent.
    """
    next_action = GOAL_ACHIEVED if GOAL_ACHIEVED in text else CONTINUE

    confidence = DEFAULT_CONFIDENCE
    match = _CONFIDENCE_RE.search(text)
    if match:
        confidence = min(1.0, max(0.0, float(match.group(1))))

    return Thought(
        reasoning=text,
        next_action=next_action,
        confidence=confidence,
        alternatives=_parse_alternatives(text),
        intent=parse_intent(parse_json_block(text)),
    )


def _parse_alternatives(text: str) -> list[str]:
    match = _ALTERNATIVES_RE.search(text)
    if not match:
        return []
    alternatives = []
    for line in text[match.end() :].splitlines():
        if not line.strip():
            if alternatives:
                break
            continue
        bullet = _BULLET_RE.match(line)
        if not bullet:
            break
        alternatives.append(bullet.group(1))
    return alternatives


def parse_learning(text: str) -> Learning:
    """Parse a Learn reply, falling back to ``Learning.fallback()``."""
    data = parse_json_block(text)
    if data is None:
        logger.info("No structured learning in reply, using default")
        return Learning.fallback()
    try:
        return Learning.model_validate(data)
    except ValidationError as e:
        logger.info("Learning block failed validation, using default: %s", e)
        return Learning.fallback()
