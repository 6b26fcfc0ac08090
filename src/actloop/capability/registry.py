"""Capability registry — the tools, skills, and sub-workers of a run."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from actloop.agent.state import ActionKind
from actloop.capability.base import BaseTool, Capability, Skill, SubWorker

logger = logging.getLogger(__name__)

_KIND_LABELS = {
    ActionKind.TOOL_USE: "Tool",
    ActionKind.SKILL_INVOKE: "Skill",
    ActionKind.SUBAGENT_SPAWN: "Subagent",
}


class CapabilityRegistry:
    """Registry of available capabilities.

    Capabilities are registered by name in per-kind namespaces, so a tool
    and a skill may share a name. Registration order is preserved.
    """

    def __init__(self) -> None:
        self._by_kind: dict[ActionKind, dict[str, Capability]] = {
            kind: {} for kind in _KIND_LABELS
        }

    @classmethod
    def from_lists(
        cls,
        tools: Iterable[BaseTool] = (),
        skills: Iterable[Skill] = (),
        subworkers: Iterable[SubWorker] = (),
    ) -> CapabilityRegistry:
        """Build a registry from the caller-supplied ordered lists."""
        reg = cls()
        reg.register_many([*tools, *skills, *subworkers])
        return reg

    def register(self, capability: Capability) -> None:
        """Register a capability instance."""
        bucket = self._by_kind.get(capability.kind)
        if bucket is None:
            raise TypeError(f"Cannot register {capability.kind.value} capability")
        if capability.name in bucket:
            logger.warning(
                "%s %s already registered, overwriting",
                _KIND_LABELS[capability.kind],
                capability.name,
            )
        bucket[capability.name] = capability

    def register_many(self, capabilities: Iterable[Capability]) -> None:
        """Register multiple capabilities."""
        for cap in capabilities:
            self.register(cap)

    def get(self, kind: ActionKind, name: str) -> Capability | None:
        """Get a capability of the given kind by name."""
        return self._by_kind.get(kind, {}).get(name)

    def names(self, kind: ActionKind | None = None) -> list[str]:
        """Get registered names, optionally for one kind only."""
        if kind is not None:
            return list(self._by_kind.get(kind, {}).keys())
        return [name for bucket in self._by_kind.values() for name in bucket]

    @property
    def tools(self) -> list[BaseTool]:
        return list(self._by_kind[ActionKind.TOOL_USE].values())  # type: ignore[arg-type]

    @property
    def skills(self) -> list[Skill]:
        return list(self._by_kind[ActionKind.SKILL_INVOKE].values())  # type: ignore[arg-type]

    @property
    def subworkers(self) -> list[SubWorker]:
        return list(self._by_kind[ActionKind.SUBAGENT_SPAWN].values())  # type: ignore[arg-type]

    def auto_invoke_skills(self) -> list[Skill]:
        return [s for s in self.skills if s.auto_invoke]

    def describe(self) -> str:
        """Human-readable listing for the reasoning provider's preamble."""
        sections = []
        for title, caps in (
            ("Available tools", self.tools),
            ("Available skills", self.skills),
            ("Available subagents", self.subworkers),
        ):
            body = "\n".join(c.describe() for c in caps) if caps else "- (none)"
            sections.append(f"{title}:\n{body}")
        return "\n\n".join(sections)

    def label(self, kind: ActionKind) -> str:
        return _KIND_LABELS.get(kind, kind.value)

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._by_kind.values())

    def __contains__(self, name: str) -> bool:
        return any(name in bucket for bucket in self._by_kind.values())
