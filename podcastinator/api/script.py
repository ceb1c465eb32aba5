"""Script endpoints.

POST /api/script/generate-stream        run the full script pipeline (SSE)
POST /api/script/runs/{run_id}/cancel   request cooperative cancellation
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from podcastinator.api.deps import SSE_HEADERS, ClientFactory, get_client_factory, sse
from podcastinator.config import get_settings
from podcastinator.schemas.podcast import GenerateScriptRequest
from podcastinator.services.base import PipelineEvent
from podcastinator.services.llm_client import LLMError
from podcastinator.services.outline_parser import parse_outline
from podcastinator.services.progress import CallbackNotificationSink, CallbackProgressSink, ProgressAccumulator
from podcastinator.services.retry import CancellationToken
from podcastinator.services.script_pipeline import ScriptPipelineOrchestrator

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

# In-process registry: run_id -> cancellation token of a running script run
_active_runs: dict[str, CancellationToken] = {}


async def _script_event_stream(
    run_id: str,
    token: CancellationToken,
    req: GenerateScriptRequest,
    client_factory: ClientFactory,
):
    queue: asyncio.Queue[PipelineEvent | None] = asyncio.Queue()
    progress = ProgressAccumulator(
        CallbackProgressSink(
            lambda stage, pct: queue.put_nowait(PipelineEvent(event_type="progress", step=stage, percent=pct)),
        ),
        stage_id="script",
        section_share=settings.PROGRESS_SECTION_SHARE,
        review_split=settings.PROGRESS_REVIEW_SPLIT,
    )
    notifications = CallbackNotificationSink(
        lambda level, msg: queue.put_nowait(PipelineEvent(event_type="notification", label=level, text=msg)),
    )
    orchestrator = ScriptPipelineOrchestrator(
        client_factory(token),
        req.brief,
        outline_text=req.outline,
        progress=progress,
        notifications=notifications,
        should_cancel=token,
        on_event=queue.put_nowait,
    )

    async def _runner() -> None:
        try:
            await orchestrator.run()
        except LLMError as e:
            queue.put_nowait(PipelineEvent(event_type="error", error=str(e), text=orchestrator.buffer.text))
        except Exception as e:
            logger.exception("Script pipeline error (run=%s)", run_id)
            queue.put_nowait(PipelineEvent(event_type="error", error=f"[script] {e}", text=orchestrator.buffer.text))
        finally:
            queue.put_nowait(None)

    _active_runs[run_id] = token
    yield sse("run_started", {"run_id": run_id})
    task = asyncio.create_task(_runner())
    try:
        while (event := await queue.get()) is not None:
            yield sse(event.event_type, event.model_dump(exclude_none=True))
    finally:
        _active_runs.pop(run_id, None)
        if not task.done():
            token.cancel()


@router.post("/generate-stream")
async def generate_script_stream(
    req: GenerateScriptRequest,
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Generate the podcast script section by section with streaming events.

    Event types: run_started, step_start, step_complete, progress,
    section_committed, notification, pipeline_complete, cancelled, error.
    """
    if not parse_outline(req.outline):
        raise HTTPException(
            status_code=422,
            detail="Could not parse any sections from the outline. Please check the outline format.",
        )
    run_id = uuid.uuid4().hex
    return StreamingResponse(
        _script_event_stream(run_id, CancellationToken(), req, client_factory),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/runs/{run_id}/cancel")
async def cancel_run(run_id: str):
    """Flag a running script run for cancellation."""
    token = _active_runs.get(run_id)
    if token is None:
        raise HTTPException(status_code=404, detail=f"No active run {run_id}")
    token.cancel()
    logger.info("Cancellation requested for run=%s", run_id)
    return {"run_id": run_id, "status": "cancelling"}
