"""Reasoning provider layer — litellm adapter and reply parsing."""

from actloop.llm.parsing import (
    extract_json_block,
    parse_intent,
    parse_json_block,
    parse_learning,
    parse_thought,
)
from actloop.llm.provider import (
    LiteLLMProvider,
    ProviderConfig,
    ReasoningProvider,
    ScriptedProvider,
    create_provider,
)

__all__ = [
    "LiteLLMProvider",
    "ProviderConfig",
    "ReasoningProvider",
    "ScriptedProvider",
    "create_provider",
    "extract_json_block",
    "parse_intent",
    "parse_json_block",
    "parse_learning",
    "parse_thought",
]
