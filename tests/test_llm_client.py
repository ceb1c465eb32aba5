"""CompletionClient against a mocked model service (httpx.MockTransport)."""
import asyncio
import json

import httpx
import pytest

from podcastinator.services.llm_client import (
    AuthError,
    CompletionClient,
    CompletionRequest,
    LLMError,
    RateLimitError,
    TransientNetworkError,
    UsageCounter,
    _mask_key,
)
from podcastinator.services.retry import RetryPolicy

FAST = RetryPolicy(max_retries=3, base_delay_ms=0, max_delay_ms=0, jitter_fraction=0)


def _ok(content="Hello there", prompt_tokens=12, completion_tokens=7):
    return httpx.Response(200, json={
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    })


class Recorder:
    """Transport handler returning queued responses and recording request bodies."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.bodies = []
        self.paths = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        self.bodies.append(json.loads(request.content) if request.content else None)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _call(handler, request, **client_kwargs):
    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient(
                client_kwargs.pop("api_key", "sk-test-0123456789abcdef"),
                "https://llm.test/v1",
                policy=client_kwargs.pop("policy", FAST),
                http_client=http,
                **client_kwargs,
            )
            return await client.complete(request), client
    return asyncio.run(_go())


def _request(model="gpt-4.1-mini", **kwargs):
    return CompletionRequest.from_prompts(model, "system text", "user text", caller="test", **kwargs)


def test_successful_completion_tracks_usage():
    handler = Recorder(_ok("  Hi!  "))

    completion, client = _call(handler, _request(temperature=0.3, max_tokens=500))

    assert completion.text == "Hi!"
    assert completion.usage.total_tokens == 19
    assert client.usage.get("gpt-4.1-mini").prompt_tokens == 12
    assert handler.paths == ["/v1/chat/completions"]
    body = handler.bodies[0]
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 500
    assert body["messages"][0] == {"role": "system", "content": "system text"}


def test_reasoning_models_use_completion_token_limit():
    handler = Recorder(_ok())

    _call(handler, _request(model="o3-mini", temperature=0.7, max_tokens=800))

    body = handler.bodies[0]
    assert body["max_completion_tokens"] == 800
    assert "max_tokens" not in body
    assert "temperature" not in body


def test_rate_limit_is_retried():
    handler = Recorder(
        httpx.Response(429, json={"error": {"message": "slow down"}}),
        _ok("after 429"),
    )

    completion, _ = _call(handler, _request())

    assert completion.text == "after 429"
    assert len(handler.bodies) == 2


def test_server_errors_retried_until_budget_spent():
    handler = Recorder(httpx.Response(503, text="unavailable"))

    with pytest.raises(LLMError) as exc_info:
        _call(handler, _request())

    assert exc_info.value.status_code == 503
    assert exc_info.value.retriable is True
    assert len(handler.bodies) == 4


def test_rate_limit_exhaustion_raises_rate_limit_error():
    handler = Recorder(httpx.Response(429, json={"error": {"message": "slow down"}}))

    with pytest.raises(RateLimitError):
        _call(handler, _request(), policy=RetryPolicy(max_retries=1, base_delay_ms=0, max_delay_ms=0))
    assert len(handler.bodies) == 2


def test_auth_error_not_retried():
    handler = Recorder(httpx.Response(401, json={"error": {"message": "Incorrect API key"}}))

    with pytest.raises(AuthError) as exc_info:
        _call(handler, _request())

    assert "Incorrect API key" in str(exc_info.value)
    assert len(handler.bodies) == 1


def test_missing_key_fails_before_any_request():
    handler = Recorder(_ok())

    with pytest.raises(AuthError):
        _call(handler, _request(), api_key="")
    assert handler.bodies == []


def test_bad_request_not_retried():
    handler = Recorder(httpx.Response(400, json={"error": {"message": "context too long"}}))

    with pytest.raises(LLMError) as exc_info:
        _call(handler, _request())

    assert exc_info.value.retriable is False
    assert len(handler.bodies) == 1


def test_transport_error_then_success():
    handler = Recorder(httpx.ConnectError("connection refused"), _ok("recovered"))

    completion, _ = _call(handler, _request())

    assert completion.text == "recovered"


def test_empty_content_is_retried():
    handler = Recorder(_ok(""), _ok("second time"))

    completion, _ = _call(handler, _request())

    assert completion.text == "second time"


def test_non_json_success_body_is_retried_then_raises():
    handler = Recorder(httpx.Response(200, text="<html>502 upstream</html>"))

    with pytest.raises(TransientNetworkError) as exc_info:
        _call(handler, _request())

    assert exc_info.value.retriable is True
    assert "<html>" in exc_info.value.body
    assert len(handler.bodies) == 4


def test_non_json_success_body_then_recovery():
    handler = Recorder(httpx.Response(200, text="<html>gateway</html>"), _ok("clean"))

    completion, _ = _call(handler, _request())

    assert completion.text == "clean"
    assert len(handler.bodies) == 2


def test_retry_hook_called():
    seen = []
    handler = Recorder(httpx.Response(502, text="bad gateway"), _ok())

    _call(handler, _request(), on_retry=lambda attempt, delay, exc: seen.append(attempt))

    assert seen == [1]


def test_speech_returns_audio_bytes():
    handler = Recorder(httpx.Response(200, content=b"ID3-fake-mp3"))

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient("sk-test-0123456789abcdef", "https://llm.test/v1", policy=FAST, http_client=http)
            audio = await client.speech("Hello", voice="alloy", model="gpt-4o-mini-tts", instructions="warm", speed=1.1)
            return audio, client

    audio, client = asyncio.run(_go())

    assert audio == b"ID3-fake-mp3"
    assert handler.paths == ["/v1/audio/speech"]
    assert handler.bodies[0]["instructions"] == "warm"
    assert handler.bodies[0]["speed"] == 1.1
    assert client.usage.snapshot()["speech_characters"] == {"gpt-4o-mini-tts": 5}


def test_speech_instructions_only_for_gpt4o_models():
    handler = Recorder(httpx.Response(200, content=b"mp3"))

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient("sk-test-0123456789abcdef", "https://llm.test/v1", policy=FAST, http_client=http)
            await client.speech("Hello", voice="echo", model="tts-1", instructions="warm")

    asyncio.run(_go())

    assert "instructions" not in handler.bodies[0]


def test_usage_counter_accumulates():
    counter = UsageCounter()
    handler = Recorder(_ok(prompt_tokens=1, completion_tokens=2))

    _call(handler, _request(), usage=counter)
    _call(handler, _request(), usage=counter)

    assert counter.snapshot()["completions"]["gpt-4.1-mini"]["total_tokens"] == 6


def test_mask_key():
    assert _mask_key("short") == "***"
    assert _mask_key("sk-test-0123456789abcdef") == "sk-test-...cdef"
