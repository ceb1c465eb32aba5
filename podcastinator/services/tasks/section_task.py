"""SectionScriptTask: dialogue for one leaf section of the outline."""

from __future__ import annotations

from podcastinator.prompts import script_prompts
from podcastinator.schemas.podcast import PodcastBrief

from ..base import VerificationResult
from ..continuity import ContinuityContext
from ..outline_parser import Section
from ..script_text import clean_script_text, word_count
from ..verification import format_feedback
from .base import BaseContentTask

PART_INTRO = "intro"
PART_SECTION = "section"
PART_OUTRO = "outro"


def part_type_for(index: int, total: int) -> str:
    """First leaf is the intro, last the outro, everything else a plain section."""
    if index == 0:
        return PART_INTRO
    if index == total - 1:
        return PART_OUTRO
    return PART_SECTION


class SectionScriptTask(BaseContentTask):
    """Writes, reviews and edits the dialogue of one outline section."""

    label = "Script section"

    def __init__(
        self,
        section: Section,
        brief: PodcastBrief,
        *,
        part_type: str,
        total_duration: float,
        context: ContinuityContext | None = None,
        words_per_minute: int = 160,
        generate_model: str,
        verify_model: str,
    ) -> None:
        super().__init__(generate_model=generate_model, verify_model=verify_model, style=brief.style)
        self.section = section
        self.brief = brief
        self.part_type = part_type
        self.total_duration = total_duration
        self.context = context or ContinuityContext()
        self.wpm = words_per_minute
        self.name = f"section:{section.number}"
        self.label = f"Section {section.number}: {section.title}"

    @property
    def words_target(self) -> int:
        return self.section.words_target(self.wpm)

    def build_generate_prompt(self) -> tuple[str, str]:
        system = script_prompts.build_script_system(self.brief, self.wpm)
        user = script_prompts.build_section_user(
            self.section,
            part_type=self.part_type,
            total_duration=self.total_duration,
            words_target=self.words_target,
            previous_dialogue=self.context.last_exchanges,
            summaries=self.context.summaries_text(),
            topics=self.context.topics_text(),
        )
        return system, user

    def build_verify_prompt(self, text: str) -> tuple[str, str]:
        system = script_prompts.build_section_verify_system(self.style)
        user = script_prompts.build_section_verify_user(
            self.section,
            text,
            document_content=self.brief.document_content,
            total_duration=self.total_duration,
            words_target=self.words_target,
            previous_text=self.context.previous_text,
        )
        return system, user

    def build_improve_prompt(self, text: str, verification: VerificationResult) -> tuple[str, str]:
        system = script_prompts.build_section_improve_system(self.style, self.wpm)
        system += script_prompts.language_instruction(self.brief.language)
        user = script_prompts.build_section_improve_user(
            self.section,
            text,
            format_feedback(verification),
            document_content=self.brief.document_content,
            words_target=self.words_target,
            current_words=word_count(text),
        )
        return system, user

    def clean(self, text: str) -> str:
        return clean_script_text(text, self.brief.host.name, self.brief.guest.name)
