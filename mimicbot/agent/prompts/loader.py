"""Prompt templates.

Every ``<name>.txt`` next to this module is a template. Placeholders use
``{name}``; literal braces are doubled. A placeholder nobody filled in is
kept as written, so a template can be rendered in stages.

Usage::

    prompts = PromptLoader()
    prompts.load("revive")
    prompts.load("classify", name="mimic")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class PromptLoader:
    """Reads templates once and renders them on demand."""

    def __init__(self, prompts_dir: Path | None = None) -> None:
        self._dir = prompts_dir or Path(__file__).parent
        self._templates: dict[str, str] = {}

    def load(self, prompt_name: str, **template_vars: Any) -> str:
        """Render a template, stripped of surrounding whitespace.

        Raises:
            FileNotFoundError: No ``<prompt_name>.txt`` exists.
        """
        template = self.load_raw(prompt_name)
        if template_vars:
            template = template.format_map(_KeepMissing(template_vars))
        return template.strip()

    def load_raw(self, prompt_name: str) -> str:
        template = self._templates.get(prompt_name)
        if template is None:
            path = self._dir / f"{prompt_name}.txt"
            if not path.is_file():
                raise FileNotFoundError(f"No prompt template {prompt_name!r} in {self._dir}")
            template = self._templates[prompt_name] = path.read_text(encoding="utf-8")
            logger.debug(f"Prompts: read {prompt_name} ({len(template)} chars)")
        return template

    def reload(self) -> None:
        """Forget cached templates; edits on disk show up on the next load."""
        self._templates.clear()

    def list_prompts(self) -> list[str]:
        return sorted(path.stem for path in self._dir.glob("*.txt"))
