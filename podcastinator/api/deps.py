"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

import json
from typing import Any, Callable

from podcastinator.services.llm_client import CompletionClient
from podcastinator.services.retry import CancelQuery

ClientFactory = Callable[[CancelQuery | None], CompletionClient]


def get_client_factory() -> ClientFactory:
    """Build one CompletionClient per run so retries observe that run's cancel flag."""

    def _factory(should_cancel: CancelQuery | None = None) -> CompletionClient:
        return CompletionClient(should_cancel=should_cancel)

    return _factory


def sse(event_type: str, data: dict[str, Any]) -> str:
    """Format one server-sent event."""
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
