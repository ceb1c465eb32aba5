"""OutlineTask: the podcast outline, reviewed for structure and timing."""

from __future__ import annotations

import re

from podcastinator.prompts import outline_prompts
from podcastinator.schemas.podcast import PodcastBrief

from ..base import VerificationResult
from ..outline_parser import parse_outline, total_duration
from ..verification import OUTLINE_POSITIVE_KEYWORDS
from .base import BaseContentTask

_FENCE_LINE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*$", re.MULTILINE)


def format_outline_feedback(verification: VerificationResult) -> str:
    """Issues grouped by severity, most severe first, then the overall feedback."""
    lines: list[str] = []
    for severity in ("critical", "major", "minor", "unknown"):
        issues = [i for i in verification.issues or [] if i.severity == severity]
        if not issues:
            continue
        lines.append(f"{severity.upper()} ISSUES:")
        for issue in issues:
            category = f"[{issue.category}] " if issue.category else ""
            fix = f" Fix: {issue.fix}" if issue.fix else ""
            lines.append(f"- {category}{issue.description}{fix}")
        lines.append("")
    if verification.feedback:
        lines.append(verification.feedback)
    return "\n".join(lines).strip() or "Improve structure and timing accuracy."


class OutlineTask(BaseContentTask):
    name = "outline"
    label = "Outline"
    positive_keywords = OUTLINE_POSITIVE_KEYWORDS
    verify_max_tokens = 1500

    def __init__(self, brief: PodcastBrief, *, generate_model: str, verify_model: str) -> None:
        super().__init__(generate_model=generate_model, verify_model=verify_model, style=brief.style)
        self.brief = brief

    def build_generate_prompt(self) -> tuple[str, str]:
        return (
            outline_prompts.build_outline_system(self.brief),
            outline_prompts.build_outline_user(self.brief),
        )

    def build_verify_prompt(self, text: str) -> tuple[str, str]:
        minutes = total_duration(parse_outline(text))
        return (
            outline_prompts.build_outline_verify_system(self.style),
            outline_prompts.build_outline_verify_user(text, self.brief, minutes),
        )

    def build_improve_prompt(self, text: str, verification: VerificationResult) -> tuple[str, str]:
        return (
            outline_prompts.build_outline_improve_system(self.brief),
            outline_prompts.build_outline_improve_user(text, format_outline_feedback(verification), self.brief),
        )

    def clean(self, text: str) -> str:
        text = _FENCE_LINE_RE.sub("", text)
        text = re.sub(r"^\s*(?:markdown|md)\s*$", "", text, flags=re.MULTILINE | re.IGNORECASE)
        return text.strip()
