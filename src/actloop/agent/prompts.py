"""Prompt templates for the Think and Learn phases."""

from __future__ import annotations

SYSTEM_PROMPT = """\
You are an autonomous agent working towards this goal:

{goal}

Each turn you observe the current state, think, and take exactly one action.

{capabilities}

To take an action, include one JSON block in your reply:
{{"action": {{"type": "tool_use" | "skill_invoke" | "subagent_spawn" | "respond", \
"target": "<name>", "parameters": {{...}}}}}}
A subagent's parameters are {{"task": "...", "context": {{...}}}}.

Optionally add a line "CONFIDENCE: <0.0-1.0>" and an "ALTERNATIVES:" list \
of other actions you considered.

If the goal is already achieved, reply with GOAL_ACHIEVED and nothing else \
needs to happen."""

THINKING_PROMPT = """\
Current observation:
{observation}

Based on this observation, what should be the next action?
If the goal is achieved, respond with "GOAL_ACHIEVED"."""

LEARNING_SYSTEM = """\
You review the outcome of an agent's action and extract lessons. \
Reply with JSON only."""

LEARNING_PROMPT = """\
Analyze this action and its result:

Action: {action}
Result: {result}

What did we learn? Should we adjust our approach?

Respond in JSON format:
{{
  "success": boolean,
  "insights": string[],
  "adjustments": string[],
  "newKnowledge": object | null
}}"""
