"""Outline endpoints.

POST /api/outline/parse             parse outline text into leaf sections
POST /api/outline/generate-stream   generate + review an outline (SSE)
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from podcastinator.api.deps import SSE_HEADERS, ClientFactory, get_client_factory, sse
from podcastinator.config import get_settings
from podcastinator.schemas.podcast import (
    GenerateOutlineRequest,
    ParseOutlineRequest,
    ParseOutlineResponse,
    SectionRead,
)
from podcastinator.services.base import PipelineEvent
from podcastinator.services.llm_client import LLMError
from podcastinator.services.outline_generator import generate_outline
from podcastinator.services.outline_parser import parse_outline, total_duration
from podcastinator.services.progress import CallbackNotificationSink, CallbackProgressSink, ProgressAccumulator
from podcastinator.services.retry import CancellationToken, PipelineCancelled

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


@router.post("/parse", response_model=ParseOutlineResponse)
async def parse_outline_endpoint(req: ParseOutlineRequest):
    """Parse outline text. Parent headings and headings without a duration are dropped."""
    sections = parse_outline(req.outline)
    return ParseOutlineResponse(
        sections=[SectionRead(**s.model_dump(exclude={"content"})) for s in sections],
        total_duration=total_duration(sections),
    )


async def _outline_event_stream(req: GenerateOutlineRequest, client_factory: ClientFactory):
    queue: asyncio.Queue[PipelineEvent | None] = asyncio.Queue()
    token = CancellationToken()
    client = client_factory(token)
    progress = ProgressAccumulator(
        CallbackProgressSink(
            lambda stage, pct: queue.put_nowait(PipelineEvent(event_type="progress", step=stage, percent=pct)),
        ),
        stage_id="outline",
    )
    notifications = CallbackNotificationSink(
        lambda level, msg: queue.put_nowait(PipelineEvent(event_type="notification", label=level, text=msg)),
    )

    async def _runner() -> None:
        try:
            outcome = await generate_outline(
                client, req.brief,
                progress=progress,
                notifications=notifications,
                should_cancel=token,
                on_event=queue.put_nowait,
            )
            sections = parse_outline(outcome.chosen_text)
            queue.put_nowait(PipelineEvent(
                event_type="pipeline_complete",
                text=outcome.chosen_text,
                result={
                    "sections": len(sections),
                    "total_duration": total_duration(sections),
                    "attempts": outcome.total_attempts,
                    "score": outcome.chosen_score,
                },
            ))
        except PipelineCancelled:
            queue.put_nowait(PipelineEvent(event_type="cancelled"))
        except LLMError as e:
            logger.error("Outline generation failed: %s", e)
            queue.put_nowait(PipelineEvent(event_type="error", error=str(e)))
        except Exception as e:
            logger.exception("Outline pipeline error")
            queue.put_nowait(PipelineEvent(event_type="error", error=f"[outline] {e}"))
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(_runner())
    try:
        while (event := await queue.get()) is not None:
            yield sse(event.event_type, event.model_dump(exclude_none=True))
    finally:
        if not task.done():
            # Client went away mid-stream.
            token.cancel()


@router.post("/generate-stream")
async def generate_outline_stream(
    req: GenerateOutlineRequest,
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Generate an outline with streaming progress.

    Returns a text/event-stream with step_start, step_complete, progress,
    notification and pipeline_complete events.
    """
    return StreamingResponse(
        _outline_event_stream(req, client_factory),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
