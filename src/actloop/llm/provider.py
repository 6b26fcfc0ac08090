"""Reasoning provider abstraction — unified via litellm.

The loop only needs one call shape: a system preamble and a user prompt in,
free-form text out. litellm handles provider detection from the model
prefix ("anthropic/...", "openai/...", "gemini/...") and reads API keys
from the environment.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from litellm import ModelResponse

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for a reasoning provider."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None  # hard cap over the per-call budget
    timeout: float | None = None  # per-request timeout passed to litellm


@runtime_checkable
class ReasoningProvider(Protocol):
    """Anything that can turn a preamble and a prompt into text."""

    async def complete(self, system: str, prompt: str, max_tokens: int) -> str: ...


# ---------------------------------------------------------------------------
# litellm provider
# ---------------------------------------------------------------------------


@dataclass
class LiteLLMProvider:
    """Reasoning provider backed by ``litellm.acompletion``."""

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    async def complete(self, system: str, prompt: str, max_tokens: int = 2000) -> str:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": min(max_tokens, self._config.max_tokens or max_tokens),
        }
        if self._config.temperature is not None:
            kwargs["temperature"] = self._config.temperature
        if self._config.timeout is not None:
            kwargs["timeout"] = self._config.timeout

        response = await _acompletion_with_retry(**kwargs)
        return _response_text(response)


@retry(
    retry=retry_if_exception_type((ConnectionError, TimeoutError, OSError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _acompletion_with_retry(**kwargs: Any) -> ModelResponse:
    """Call litellm.acompletion with retry on transient errors."""
    import litellm

    return await litellm.acompletion(**kwargs)


def _response_text(response: Any) -> str:
    """Pull the first choice's text out of an OpenAI-shaped response."""
    choices = getattr(response, "choices", None)
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    return content or ""


# ---------------------------------------------------------------------------
# Scripted provider
# ---------------------------------------------------------------------------


@dataclass
class ProviderCall:
    system: str
    prompt: str
    max_tokens: int


@dataclass
class ScriptedProvider:
    """Replays canned replies in order, then ``default`` forever.

    Every call is recorded in ``calls`` for inspection. Used for tests and
    the CLI's ``--dry-run``.
    """

    replies: list[str] = field(default_factory=list)
    default: str = "GOAL_ACHIEVED"
    calls: list[ProviderCall] = field(default_factory=list)

    @classmethod
    def of(cls, *replies: str, default: str = "GOAL_ACHIEVED") -> ScriptedProvider:
        return cls(replies=list(replies), default=default)

    def extend(self, replies: Iterable[str]) -> None:
        self.replies.extend(replies)

    async def complete(self, system: str, prompt: str, max_tokens: int = 2000) -> str:
        self.calls.append(ProviderCall(system=system, prompt=prompt, max_tokens=max_tokens))
        if self.replies:
            return self.replies.pop(0)
        return self.default


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
) -> ReasoningProvider:
    """Create a LiteLLM provider.

    Args:
        model: Model name with provider prefix (e.g. "anthropic/claude-sonnet-4-5-20250929",
               "openai/gpt-4o"). litellm reads API keys from env vars.
        temperature: Sampling temperature.
        max_tokens: Upper bound on output tokens for any call.
        timeout: Per-request timeout in seconds.
    """
    config = ProviderConfig(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )
    return LiteLLMProvider(_config=config)
