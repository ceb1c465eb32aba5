"""ScriptPipelineOrchestrator: sequential section pipelines plus a
whole-script cross-section pass.

Sections run strictly in document order: each one continues the previous
section's chosen dialogue and sees the synopsis/topic list of everything
before it (ContinuityContext). Once every section is committed, one more
SectionPipeline reviews the assembled script for cross-section issues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from podcastinator.config import get_settings
from podcastinator.prompts import script_prompts
from podcastinator.schemas.podcast import PodcastBrief

from .base import PipelineEvent, PipelineOutcome
from .continuity import ContinuityContext, parse_summary_response
from .llm_client import CompletionRequest, CompletionService, LLMError
from .outline_parser import Section, parse_outline, total_duration
from .progress import LoggingNotificationSink, NotificationSink, ProgressAccumulator, StageWeights
from .retry import CancelQuery, PipelineCancelled, raise_if_cancelled
from .script_text import extract_last_exchanges
from .section_pipeline import EventHook, SectionPipeline, maybe_await
from .tasks import CrossSectionTask, SectionScriptTask, part_type_for

logger = logging.getLogger(__name__)
settings = get_settings()

STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Output buffer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommittedSection:
    number: str
    title: str
    text: str


@dataclass(frozen=True)
class BufferUpdate:
    kind: str  # "section", "final" or "reset"
    text: str
    section: CommittedSection | None = None


BufferObserver = Callable[[BufferUpdate], Any]


class ScriptBuffer:
    """Append-only record of committed section texts.

    Every change swaps in a new tuple, so readers holding `sections` or
    `text` always see a consistent snapshot. Observers are told about each
    commit and about the final (cross-section revised) text.
    """

    def __init__(self) -> None:
        self._sections: tuple[CommittedSection, ...] = ()
        self._final: str | None = None
        self._observers: list[BufferObserver] = []

    def subscribe(self, observer: BufferObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)
        return _unsubscribe

    @property
    def sections(self) -> tuple[CommittedSection, ...]:
        return self._sections

    @property
    def assembled(self) -> str:
        return "\n\n".join(s.text for s in self._sections)

    @property
    def final_text(self) -> str | None:
        return self._final

    @property
    def text(self) -> str:
        return self._final if self._final is not None else self.assembled

    def clear(self) -> None:
        self._sections = ()
        self._final = None
        self._notify(BufferUpdate(kind="reset", text=""))

    def commit(self, number: str, title: str, text: str) -> CommittedSection:
        if self._final is not None:
            raise RuntimeError("Script already finalized; cannot append sections")
        entry = CommittedSection(number=number, title=title, text=text)
        self._sections = self._sections + (entry,)
        self._notify(BufferUpdate(kind="section", text=self.assembled, section=entry))
        return entry

    def finalize(self, text: str) -> None:
        self._final = text
        self._notify(BufferUpdate(kind="final", text=text))

    def _notify(self, update: BufferUpdate) -> None:
        for observer in list(self._observers):
            try:
                observer(update)
            except Exception:
                logger.warning("Script buffer observer failed", exc_info=True)


@dataclass
class ScriptRunResult:
    status: str
    text: str
    sections_completed: int
    total_sections: int
    outcomes: list[PipelineOutcome] = field(default_factory=list)
    cross_section: PipelineOutcome | None = None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ScriptPipelineOrchestrator:
    """Generates a full two-voice script from parsed outline sections.

    Args:
        client: Completion service shared by every call in the run.
        brief: Document, focus, personas and language.
        outline_text: Raw outline, shown to the cross-section reviewer.
        progress: Per-run accumulator; a logging one otherwise.
        notifications: Info/success/error sink; logging otherwise.
        should_cancel: Polled cancellation query.
        on_event: Receives PipelineEvents (SSE, tests).
        buffer: Output buffer; a fresh one otherwise.
    """

    def __init__(
        self,
        client: CompletionService,
        brief: PodcastBrief,
        *,
        outline_text: str = "",
        progress: ProgressAccumulator | None = None,
        notifications: NotificationSink | None = None,
        should_cancel: CancelQuery | None = None,
        on_event: EventHook | None = None,
        buffer: ScriptBuffer | None = None,
        section_max_attempts: int | None = None,
        cross_section_max_attempts: int | None = None,
        script_model: str | None = None,
        script_verify_model: str | None = None,
        summary_model: str | None = None,
        words_per_minute: int | None = None,
    ) -> None:
        self.client = client
        self.brief = brief
        self.outline_text = outline_text
        self.progress = progress or ProgressAccumulator(
            section_share=settings.PROGRESS_SECTION_SHARE,
            review_split=settings.PROGRESS_REVIEW_SPLIT,
        )
        self.notifications = notifications or LoggingNotificationSink()
        self.should_cancel = should_cancel
        self.on_event = on_event
        self.buffer = buffer or ScriptBuffer()
        self.section_max_attempts = (
            settings.SECTION_MAX_ATTEMPTS if section_max_attempts is None else section_max_attempts
        )
        self.cross_section_max_attempts = (
            settings.CROSS_SECTION_MAX_ATTEMPTS if cross_section_max_attempts is None else cross_section_max_attempts
        )
        if self.section_max_attempts < 1 or self.cross_section_max_attempts < 1:
            raise ValueError("max attempts must be at least 1")
        self.script_model = script_model or settings.SCRIPT_MODEL
        self.script_verify_model = script_verify_model or settings.SCRIPT_VERIFY_MODEL
        self.summary_model = summary_model or settings.OUTLINE_MODEL
        self.wpm = words_per_minute or settings.WORDS_PER_MINUTE
        self.stage_weights = StageWeights.from_settings(settings)
        self.total_duration = 0.0
        self.outcomes: list[PipelineOutcome] = []
        self.cross_section: PipelineOutcome | None = None

    # -- public API --------------------------------------------------------------

    async def generate_section(
        self,
        section: Section,
        context: ContinuityContext,
        *,
        index: int = 0,
        total: int = 1,
    ) -> PipelineOutcome:
        """Run one SectionPipeline for `section` using the given continuity."""
        task = SectionScriptTask(
            section,
            self.brief,
            part_type=part_type_for(index, total),
            total_duration=self.total_duration or section.duration_minutes,
            context=context,
            words_per_minute=self.wpm,
            generate_model=self.script_model,
            verify_model=self.script_verify_model,
        )
        pipeline = SectionPipeline(
            self.client,
            task,
            max_attempts=self.section_max_attempts,
            should_cancel=self.should_cancel,
            on_event=self._forward(index, total),
            on_progress=lambda fraction: self.progress.section_progress(index, fraction),
            weights=self.stage_weights,
        )
        return await pipeline.run()

    async def generate_full_document(self, sections: list[Section]) -> str:
        """Generate every section in order, then run the cross-section pass.

        Returns the final script text. Committed sections stay in the buffer
        even when a later step raises.

        Raises:
            PipelineCancelled: When the run is cancelled.
            LLMError: Unrecovered model-service failure.
            ValueError: If `sections` is empty.
        """
        if not sections:
            raise ValueError("Could not parse any sections from the outline")

        total = len(sections)
        self.total_duration = total_duration(sections)
        self.progress.reset(total)
        self.buffer.clear()
        context = ContinuityContext()
        self.outcomes: list[PipelineOutcome] = []

        for index, section in enumerate(sections):
            raise_if_cancelled(self.should_cancel, f"before section {section.number}")
            await self._emit(PipelineEvent(
                event_type="step_start", step="section", label=section.title, index=index, total=total,
            ))
            outcome = await self.generate_section(section, context, index=index, total=total)
            self.outcomes.append(outcome)

            self.buffer.commit(section.number, section.title, outcome.chosen_text)
            await self._emit(PipelineEvent(
                event_type="section_committed", step="section", label=section.title,
                index=index, total=total, attempt=outcome.chosen_index, text=outcome.chosen_text,
                result={"score": outcome.chosen_score, "attempts": outcome.total_attempts},
            ))

            context.advance(
                outcome.chosen_text,
                extract_last_exchanges(outcome.chosen_text, settings.CONTINUITY_EXCHANGES),
            )
            if index < total - 1:
                await self._summarize(section, outcome.chosen_text, context)
            self.progress.section_progress(index, 1.0)
            self.notifications.info(f"Section {section.number} complete ({index + 1}/{total})")

        self.cross_section = await self._cross_section_pass()
        final_text = self.cross_section.chosen_text
        self.buffer.finalize(final_text)
        self.progress.complete()
        return final_text

    async def run(self, outline_text: str | None = None) -> ScriptRunResult:
        """Parse the outline and generate the script, mapping cancellation to a status."""
        if outline_text is not None:
            self.outline_text = outline_text
        sections = parse_outline(self.outline_text)
        self.outcomes = []
        self.cross_section: PipelineOutcome | None = None
        try:
            text = await self.generate_full_document(sections)
        except PipelineCancelled:
            self.notifications.info("Script generation cancelled")
            await self._emit(PipelineEvent(event_type="cancelled", text=self.buffer.text))
            return ScriptRunResult(
                status=STATUS_CANCELLED,
                text=self.buffer.text,
                sections_completed=len(self.buffer.sections),
                total_sections=len(sections),
                outcomes=list(self.outcomes),
            )
        except (LLMError, ValueError) as exc:
            self.notifications.error(f"Script generation failed: {exc}")
            raise

        self.notifications.success("Script generated successfully!")
        await self._emit(PipelineEvent(event_type="pipeline_complete", text=text))
        return ScriptRunResult(
            status=STATUS_COMPLETED,
            text=text,
            sections_completed=len(self.buffer.sections),
            total_sections=len(sections),
            outcomes=list(self.outcomes),
            cross_section=self.cross_section,
        )

    # -- internals ---------------------------------------------------------------

    async def _summarize(self, section: Section, text: str, context: ContinuityContext) -> None:
        """Best-effort synopsis + topic list; failures never stop the run."""
        await self._emit(PipelineEvent(event_type="step_start", step="summary", label=section.title))
        request = CompletionRequest.from_prompts(
            self.summary_model,
            script_prompts.build_summary_system(self.brief.style),
            script_prompts.build_summary_user(text),
            temperature=0.5,
            max_tokens=300,
            caller=f"summary:{section.number}",
        )
        try:
            completion = await self.client.complete(request)
        except LLMError:
            logger.warning("Conversation summary failed for section %s", section.number, exc_info=True)
            return
        raise_if_cancelled(self.should_cancel, f"after summary {section.number}")

        summary, topics = parse_summary_response(completion.text)
        context.record(section.number, section.title, summary, topics)
        await self._emit(PipelineEvent(
            event_type="step_complete", step="summary", label=section.title,
            result={"summary": summary, "topics": topics},
        ))

    async def _cross_section_pass(self) -> PipelineOutcome:
        self.notifications.info("Performing final cross-section review...")
        task = CrossSectionTask(
            self.buffer.assembled,
            self.outline_text,
            self.brief,
            total_duration=self.total_duration,
            generate_model=self.script_model,
            verify_model=self.script_verify_model,
        )
        pipeline = SectionPipeline(
            self.client,
            task,
            max_attempts=self.cross_section_max_attempts,
            should_cancel=self.should_cancel,
            on_event=self._forward(None, None),
            on_progress=self.progress.review_progress,
            weights=self.progress.review_weights(),
        )
        outcome = await pipeline.run()
        if outcome.chosen_index > 1:
            self.notifications.info("Cross-section improvements applied.")
        else:
            self.notifications.info("Final review kept the assembled script.")
        return outcome

    def _forward(self, index: int | None, total: int | None) -> EventHook:
        async def _hook(event: PipelineEvent) -> None:
            event.index = index
            event.total = total
            await self._emit(event)
        return _hook

    async def _emit(self, event: PipelineEvent) -> None:
        if self.on_event is not None:
            await maybe_await(self.on_event, event)
