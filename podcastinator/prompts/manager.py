from __future__ import annotations
"""Prompt template overrides: built-in defaults, optionally replaced from files."""

import logging
from pathlib import Path
from typing import ClassVar

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).parent / "templates"


class PromptManager:
    """Resolve system prompts, preferring on-disk templates over built-ins.

    Templates are organized by style:
        prompts/templates/{style}/{template_name}.txt

    A style without the template falls back to 'default'; no file at all
    falls back to the built-in text passed by the caller.
    """

    _cache: ClassVar[dict[str, str]] = {}

    @classmethod
    def get_prompt(cls, template_name: str, style: str = "default") -> str:
        """Return the template text, or "" when no file exists."""
        cache_key = f"{style}/{template_name}"
        if cache_key in cls._cache:
            return cls._cache[cache_key]

        path = _TEMPLATES_DIR / style / f"{template_name}.txt"
        if not path.exists() and style != "default":
            path = _TEMPLATES_DIR / "default" / f"{template_name}.txt"

        text = path.read_text(encoding="utf-8").strip() if path.exists() else ""
        cls._cache[cache_key] = text
        return text

    @classmethod
    def resolve(cls, template_name: str, builtin: str, style: str = "default") -> str:
        """Template override if present, otherwise the built-in prompt."""
        override = cls.get_prompt(template_name, style)
        if override:
            logger.debug("Using prompt override %s/%s", style, template_name)
        return override or builtin

    @classmethod
    def reload(cls) -> None:
        """Clear cache to force reload on next access."""
        cls._cache.clear()
        logger.info("Prompt template cache cleared.")

    @classmethod
    def list_styles(cls) -> list[str]:
        if not _TEMPLATES_DIR.exists():
            return ["default"]
        styles = sorted(d.name for d in _TEMPLATES_DIR.iterdir() if d.is_dir())
        return styles or ["default"]
