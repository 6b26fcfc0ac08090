"""Configuration — Pydantic models for actloop settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """Reasoning provider configuration.

    Model names use litellm's provider-prefix format:
        "anthropic/claude-sonnet-4-5-20250929"
        "openai/gpt-4o"
        "gemini/gemini-2.5-flash"

    API keys are read from env vars automatically by litellm
    (ANTHROPIC_API_KEY, GEMINI_API_KEY, OPENAI_API_KEY).
    """

    model: str = Field(default="anthropic/claude-sonnet-4-5-20250929")
    temperature: float | None = Field(default=None)
    think_max_tokens: int = Field(
        default=2000, description="Output budget for the Think call"
    )
    learn_max_tokens: int = Field(
        default=1000, description="Output budget for the Learn call"
    )
    timeout: float | None = Field(
        default=None, description="Per-request timeout handed to litellm"
    )


class LoopConfig(BaseModel):
    """Observe-think-act-learn loop settings."""

    max_iterations: int = Field(default=10, ge=1)
    enable_logging: bool = Field(
        default=True, description="Collect timestamped lines in RunResult.log"
    )
    enable_guard_rails: bool = Field(
        default=False, description="Install the default guard rail hooks"
    )
    enable_human_in_loop: bool = Field(
        default=False, description="Flag critical actions for human approval"
    )
    call_timeout: float | None = Field(
        default=None,
        description="Seconds before a provider or capability call is abandoned",
    )
    memory_capacity: int = Field(default=100, ge=1, le=100)
    observe_memory: int = Field(
        default=5, ge=0, description="Memory records shown to the provider"
    )


class GuardRailConfig(BaseModel):
    """Settings for the default guard rail hooks."""

    denylist: list[str] | None = Field(
        default=None, description="Blocked phrases; None uses defaults"
    )
    rate_limit: int = Field(default=10, ge=1)
    rate_window_seconds: float = Field(default=3600.0, gt=0)
    rate_limited_targets: list[str] | None = Field(
        default=None, description="Only count these targets; None counts all"
    )
    critical_actions: list[str] = Field(
        default_factory=lambda: ["send_email", "create_lead", "write_file"]
    )
    privacy_patterns: list[str] | None = Field(
        default=None, description="Regexes for sensitive data; None uses defaults"
    )


class ActloopConfig(BaseModel):
    """Top-level actloop configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    guard_rails: GuardRailConfig = Field(default_factory=GuardRailConfig)
    skills_dir: str = Field(default="skills", description="Directory for skill files")
    audit_log_path: str | None = Field(
        default=None, description="JSON-lines file for audit entries"
    )

    @classmethod
    def load(cls, config_path: str | None = None) -> ActloopConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            ANTHROPIC_API_KEY         - Anthropic API key (read by litellm automatically)
            OPENAI_API_KEY            - OpenAI API key (read by litellm automatically)
            ACTLOOP_MODEL             - Override model (litellm format with provider prefix)
            ACTLOOP_MAX_ITERATIONS    - Override the iteration bound
            ACTLOOP_CALL_TIMEOUT      - Per-call timeout in seconds
            ACTLOOP_RATE_LIMIT        - Actions allowed per target per window
            ACTLOOP_RATE_WINDOW       - Rate limit window in seconds
        """
        # .env in the working directory wins over stale shell exports
        load_dotenv(find_dotenv(usecwd=True), override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            config_data = json.loads(Path(config_path).read_text())

        llm = config_data.get("llm", {})
        loop = config_data.get("loop", {})
        guard_rails = config_data.get("guard_rails", {})

        env_model = os.environ.get("ACTLOOP_MODEL")
        if env_model:
            llm["model"] = env_model

        env_max_iterations = os.environ.get("ACTLOOP_MAX_ITERATIONS")
        if env_max_iterations:
            loop["max_iterations"] = int(env_max_iterations)

        env_call_timeout = os.environ.get("ACTLOOP_CALL_TIMEOUT")
        if env_call_timeout:
            loop["call_timeout"] = float(env_call_timeout)

        env_rate_limit = os.environ.get("ACTLOOP_RATE_LIMIT")
        if env_rate_limit:
            guard_rails["rate_limit"] = int(env_rate_limit)

        env_rate_window = os.environ.get("ACTLOOP_RATE_WINDOW")
        if env_rate_window:
            guard_rails["rate_window_seconds"] = float(env_rate_window)

        if llm:
            config_data["llm"] = llm
        if loop:
            config_data["loop"] = loop
        if guard_rails:
            config_data["guard_rails"] = guard_rails

        return cls.model_validate(config_data)
