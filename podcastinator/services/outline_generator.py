"""Outline stage: the same SectionPipeline, driven by an OutlineTask."""

from __future__ import annotations

import logging

from podcastinator.config import get_settings
from podcastinator.schemas.podcast import PodcastBrief

from .base import PipelineOutcome
from .llm_client import CompletionService
from .outline_parser import parse_outline, total_duration
from .progress import NotificationSink, ProgressAccumulator
from .retry import CancelQuery
from .section_pipeline import EventHook, SectionPipeline
from .tasks import OutlineTask

logger = logging.getLogger(__name__)
settings = get_settings()


async def generate_outline(
    client: CompletionService,
    brief: PodcastBrief,
    *,
    progress: ProgressAccumulator | None = None,
    notifications: NotificationSink | None = None,
    should_cancel: CancelQuery | None = None,
    on_event: EventHook | None = None,
    max_attempts: int | None = None,
) -> PipelineOutcome:
    """Generate, review and refine a podcast outline.

    Args:
        client: Completion service.
        brief: Document, focus, target duration and personas.
        progress: Accumulator for the "outline" stage (whole 0-100 range).
        notifications: Optional info sink.
        should_cancel: Polled cancellation query.
        on_event: Receives PipelineEvents.
        max_attempts: Verify/improve budget; defaults to OUTLINE_MAX_ATTEMPTS.

    Returns:
        The pipeline outcome; `chosen_text` is the outline.
    """
    task = OutlineTask(
        brief,
        generate_model=settings.OUTLINE_MODEL,
        verify_model=settings.OUTLINE_VERIFY_MODEL,
    )
    if progress is not None:
        progress.reset()
    pipeline = SectionPipeline(
        client,
        task,
        max_attempts=settings.OUTLINE_MAX_ATTEMPTS if max_attempts is None else max_attempts,
        should_cancel=should_cancel,
        on_event=on_event,
        on_progress=(lambda fraction: progress.publish(fraction * 100.0)) if progress else None,
    )
    outcome = await pipeline.run()

    sections = parse_outline(outcome.chosen_text)
    minutes = total_duration(sections)
    logger.info(
        "Outline ready: %d leaf section(s), %.1f/%d min, %d attempt(s)",
        len(sections), minutes, brief.duration_minutes, outcome.total_attempts,
    )
    if notifications is not None:
        if not sections:
            notifications.error("The generated outline has no parseable sections.")
        else:
            notifications.success(f"Outline generated: {len(sections)} sections, {minutes:g} minutes.")
    return outcome
