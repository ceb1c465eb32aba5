"""CrossSectionTask: whole-script review for redundancy, pacing and transitions."""

from __future__ import annotations

from podcastinator.prompts import script_prompts
from podcastinator.schemas.podcast import PodcastBrief

from ..base import VerificationResult
from ..script_text import clean_script_text, word_count
from ..verification import format_feedback
from .base import BaseContentTask


class CrossSectionTask(BaseContentTask):
    """Reviews the assembled script; attempt 1 is the script itself."""

    name = "cross_section"
    label = "Cross-section review"

    def __init__(
        self,
        script_text: str,
        outline_text: str,
        brief: PodcastBrief,
        *,
        total_duration: float,
        generate_model: str,
        verify_model: str,
    ) -> None:
        super().__init__(generate_model=generate_model, verify_model=verify_model, style=brief.style)
        self.script_text = script_text
        self.outline_text = outline_text
        self.brief = brief
        self.total_duration = total_duration
        self.improve_max_tokens = max(4096, int(word_count(script_text) * 2))

    def initial_text(self) -> str | None:
        return self.script_text

    def build_generate_prompt(self) -> tuple[str, str]:
        raise NotImplementedError("The cross-section pass starts from the assembled script")

    def build_verify_prompt(self, text: str) -> tuple[str, str]:
        return (
            script_prompts.build_cross_verify_system(self.style),
            script_prompts.build_cross_verify_user(text, self.outline_text, self.total_duration),
        )

    def build_improve_prompt(self, text: str, verification: VerificationResult) -> tuple[str, str]:
        system = script_prompts.build_cross_improve_system(self.style)
        system += script_prompts.language_instruction(self.brief.language)
        user = script_prompts.build_cross_improve_user(
            text,
            format_feedback(verification),
            outline_text=self.outline_text,
            document_content=self.brief.document_content,
            total_duration=self.total_duration,
            current_words=word_count(text),
        )
        return system, user

    def clean(self, text: str) -> str:
        return clean_script_text(text, self.brief.host.name, self.brief.guest.name)
