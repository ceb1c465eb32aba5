"""Pytest configuration helpers.

This conftest ensures the project root is on `sys.path` so tests can import
the `podcastinator` package regardless of how pytest is invoked, and
provides a scripted stand-in for the model service.
"""
import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from podcastinator.schemas.podcast import Character, PodcastBrief  # noqa: E402
from podcastinator.services.llm_client import Completion, CompletionRequest, TokenUsage  # noqa: E402

VALID_REVIEW = '{"isValid": true, "issues": [], "feedback": "Looks good."}'

OUTLINE = """\
---
1. Introduction
Duration: 2 minutes
Overview: Meet the guest and the topic.
---
2. The Discovery
Duration: 3 minutes
Overview: How it was found.
KEY FACTS:
- Found in 1928
UNIQUE FOCUS: The accident in the lab
CARRYOVER: None
---
3. Wrap-up
Duration: 1 minute
Overview: Takeaways.
---
"""


def dialogue(tag: str) -> str:
    return (
        f"---\nHOST:\nHost line for {tag}.\n\n"
        f"---\nGUEST:\nGuest line for {tag}.\n\n"
        f"---\nHOST:\nFollow-up for {tag}.\n\n"
        f"---\nGUEST:\nAnswer for {tag}."
    )


class FakeCompletionClient:
    """Answers CompletionRequests by `request.caller` prefix.

    `script(prefix, *responses)` queues responses for callers starting with
    `prefix`; the last one repeats once the queue is drained. A response may
    be a string, an exception instance (raised) or a callable taking the
    request. Unscripted callers get a sensible default by call kind.
    """

    def __init__(self) -> None:
        self.requests: list[CompletionRequest] = []
        self._scripts: dict[str, list] = {}

    def script(self, prefix: str, *responses) -> "FakeCompletionClient":
        self._scripts[prefix] = list(responses)
        return self

    def callers(self, prefix: str = "") -> list[str]:
        return [r.caller for r in self.requests if r.caller.startswith(prefix)]

    def requests_for(self, prefix: str) -> list[CompletionRequest]:
        return [r for r in self.requests if r.caller.startswith(prefix)]

    def _default(self, request: CompletionRequest) -> str:
        caller = request.caller
        if caller.endswith(":verify"):
            return VALID_REVIEW
        if caller.startswith("summary:"):
            number = caller.split(":", 1)[1]
            return f"SUMMARY: Section {number} covered the basics.\n\nTOPICS COVERED:\n- topic {number}"
        if caller.startswith("outline:"):
            return OUTLINE
        if caller.endswith(":improve"):
            return dialogue(f"{caller} improved")
        return dialogue(caller.rsplit(":", 1)[0])

    async def complete(self, request: CompletionRequest) -> Completion:
        self.requests.append(request)
        matches = [p for p in self._scripts if request.caller.startswith(p)]
        if matches:
            queue = self._scripts[max(matches, key=len)]
            response = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            response = self._default(request)

        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(request)
        return Completion(text=response, model=request.model, usage=TokenUsage(10, 20))


@pytest.fixture
def fake_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def brief() -> PodcastBrief:
    return PodcastBrief(
        document_content="Penicillin was discovered by Alexander Fleming in 1928.",
        document_name="penicillin.md",
        focus="The role of chance in science",
        duration_minutes=6,
        host=Character(name="Ana", personality="curious"),
        guest=Character(name="Dr. Lee", personality="precise"),
    )


@pytest.fixture
def outline_text() -> str:
    return OUTLINE


@pytest.fixture(autouse=True)
def _isolated_media(tmp_path, monkeypatch):
    """Keep audio files written by tests out of the working tree."""
    from podcastinator.services import tts_service

    monkeypatch.setattr(tts_service.settings, "MEDIA_VOLUME", str(tmp_path / "media"))
