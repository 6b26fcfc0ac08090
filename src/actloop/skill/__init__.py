"""Skills defined as markdown files.

Each ``.md`` file under the skills directory becomes a ``PromptSkill``.
Files may sit directly in the directory or one level down in a domain
folder:

    skills/
      summarize.md
      sales/
        qualify-lead.md

Optional YAML frontmatter configures the skill:

    ---
    name: qualify-lead
    description: Score a lead against the ideal customer profile
    domain: sales
    auto_invoke: true
    triggers: [lead, prospect]
    context_keys: [company, budget]
    ---

    Instructions for the agent...

Without frontmatter the file stem is the name, the folder is the domain,
and a leading ``# Heading`` becomes the description. The body is read from
disk each time the skill runs.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import aiofiles

from actloop.agent.state import RunState
from actloop.capability.base import Skill

logger = logging.getLogger(__name__)

SKILL_SUFFIXES = (".md", ".txt")

_FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n?(.*)", re.DOTALL)


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter from markdown content.

    Returns (config_dict, body_text). Malformed YAML raises
    ``yaml.YAMLError``.
    """
    import yaml  # lazy import, only needed when loading skills

    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content

    config = yaml.safe_load(match.group(1)) or {}
    if not isinstance(config, dict):
        raise yaml.YAMLError(f"Frontmatter must be a mapping, got {type(config).__name__}")
    return config, match.group(2)


class PromptSkill(Skill):
    """A skill whose behavior is a block of instructions.

    Invoking it hands the instructions back together with whichever of its
    ``context_keys`` are present in the run context, so the next Think
    phase can follow them.
    """

    def __init__(
        self,
        name: str,
        path: Path,
        description: str = "",
        domain: str = "general",
        auto_invoke: bool = False,
        triggers: list[str] | None = None,
        context_keys: list[str] | None = None,
    ) -> None:
        self.name = name
        self.path = path
        self.description = description
        self.domain = domain
        self.auto_invoke = auto_invoke
        self.triggers = tuple(triggers or ())
        self.context_keys = list(context_keys or [])

    @classmethod
    def from_markdown(cls, path: Path, domain: str = "general") -> PromptSkill:
        config, body = parse_frontmatter(path.read_text(encoding="utf-8"))

        description = str(config.get("description", ""))
        if not description:
            first_line = body.lstrip().split("\n", 1)[0]
            if first_line.startswith("# "):
                description = first_line[2:].strip()

        triggers = config.get("triggers") or []
        if isinstance(triggers, str):
            triggers = [triggers]

        return cls(
            name=str(config.get("name") or path.stem),
            path=path,
            description=description,
            domain=str(config.get("domain") or domain),
            auto_invoke=bool(config.get("auto_invoke", False)),
            triggers=[str(t) for t in triggers],
            context_keys=[str(k) for k in config.get("context_keys") or []],
        )

    async def load(self) -> str:
        """Load the instruction body from disk."""
        async with aiofiles.open(self.path, encoding="utf-8") as f:
            content = await f.read()
        _, body = parse_frontmatter(content)
        return body.strip()

    async def execute(self, state: RunState) -> dict[str, Any]:
        return {
            "skill": self.name,
            "instructions": await self.load(),
            "context": {k: state.context[k] for k in self.context_keys if k in state.context},
        }


def discover_skills(skills_dir: str | Path) -> list[PromptSkill]:
    """Scan ``skills_dir`` for skill files.

    Files that fail to parse are logged and skipped.
    """
    import yaml

    root = Path(skills_dir).expanduser()
    if not root.is_dir():
        logger.warning("Skills directory not found: %s", root)
        return []

    candidates: list[tuple[Path, str]] = []
    for entry in sorted(root.iterdir()):
        if entry.name.startswith("."):
            continue
        if entry.is_dir():
            candidates.extend(
                (f, entry.name)
                for f in sorted(entry.iterdir())
                if f.is_file() and f.suffix in SKILL_SUFFIXES
            )
        elif entry.suffix in SKILL_SUFFIXES:
            candidates.append((entry, "general"))

    skills = []
    for path, domain in candidates:
        try:
            skill = PromptSkill.from_markdown(path, domain=domain)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning("Skipping skill file %s: %s", path, e)
            continue
        skills.append(skill)
        logger.debug("Discovered skill: %s [%s] (%s)", skill.name, skill.domain, skill.description)

    logger.info("Discovered %d skills in %s", len(skills), root)
    return skills


__all__ = ["PromptSkill", "discover_skills", "parse_frontmatter"]
