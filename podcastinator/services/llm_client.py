"""Chat-completion and speech client for an OpenAI-compatible model service.

Every request runs through a `RetryExecutor`; failures are raised as
classified `LLMError` subclasses so callers (and the retry predicate) can
tell transient outages from auth problems.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from podcastinator.config import get_settings

from .retry import CancelQuery, RetryExecutor, RetryHook, RetryPolicy

logger = logging.getLogger(__name__)
settings = get_settings()


# ---------------------------------------------------------------------------
# Shared HTTP client (lazy init)
# ---------------------------------------------------------------------------

_http_client: httpx.AsyncClient | None = None


def _get_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(timeout=float(settings.LLM_TIMEOUT))
    return _http_client


async def close_client() -> None:
    """Close the shared HTTP client (application shutdown)."""
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


def _mask_key(key: str) -> str:
    """Mask an API key for safe logging: show first 8 and last 4 chars."""
    if len(key) <= 16:
        return "***"
    return f"{key[:8]}...{key[-4:]}"


# ---------------------------------------------------------------------------
# Request / response types
# ---------------------------------------------------------------------------

@dataclass
class CompletionRequest:
    """One chat-completion call."""
    model: str
    messages: list[dict[str, str]]
    temperature: float | None = None
    max_tokens: int = 4096
    caller: str = "unknown"

    @classmethod
    def from_prompts(
        cls,
        model: str,
        system_prompt: str,
        user_prompt: str,
        **kwargs: Any,
    ) -> CompletionRequest:
        return cls(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **kwargs,
        )


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class Completion:
    text: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class CompletionService(Protocol):
    """Anything that can answer a CompletionRequest (the client, test fakes)."""

    async def complete(self, request: CompletionRequest) -> Completion: ...


class UsageCounter:
    """Accumulates token usage per model for one client."""

    def __init__(self) -> None:
        self._by_model: dict[str, TokenUsage] = {}
        self._speech_chars: dict[str, int] = {}

    def track_completion(self, model: str, usage: TokenUsage) -> None:
        totals = self._by_model.setdefault(model, TokenUsage())
        totals.prompt_tokens += usage.prompt_tokens
        totals.completion_tokens += usage.completion_tokens

    def track_speech(self, model: str, characters: int) -> None:
        self._speech_chars[model] = self._speech_chars.get(model, 0) + characters

    def get(self, model: str) -> TokenUsage:
        return self._by_model.get(model, TokenUsage())

    def snapshot(self) -> dict[str, Any]:
        """Return usage statistics keyed by model."""
        return {
            "completions": {
                model: {
                    "prompt_tokens": u.prompt_tokens,
                    "completion_tokens": u.completion_tokens,
                    "total_tokens": u.total_tokens,
                }
                for model, u in self._by_model.items()
            },
            "speech_characters": dict(self._speech_chars),
        }


# ---------------------------------------------------------------------------
# Status classification
# ---------------------------------------------------------------------------

_AUTH_STATUS = {401, 403}
_RETRIABLE_STATUS = {408, 500, 502, 503, 504}


def _error_for_status(response: httpx.Response, caller: str) -> LLMError:
    status = response.status_code
    body = response.text[:500]
    try:
        detail = response.json().get("error", {}).get("message") or body
    except (ValueError, AttributeError):
        detail = body

    if status in _AUTH_STATUS:
        return AuthError(f"Invalid API key or access denied: {detail}", status_code=status, body=body)
    if status == 429:
        return RateLimitError(f"Rate limit exceeded: {detail}", status_code=status, body=body)
    if status in _RETRIABLE_STATUS or status >= 500:
        return TransientNetworkError(f"HTTP {status}: {detail}", status_code=status, body=body)
    logger.error("[%s] HTTP error %d: %s", caller, status, detail)
    return LLMError(f"LLM HTTP error {status}: {detail}", status_code=status, retriable=False, body=body)


def is_retryable(exc: BaseException) -> bool:
    """Retry predicate shared by every model-service call site."""
    return isinstance(exc, LLMError) and exc.retriable


def uses_reasoning_params(model: str) -> bool:
    """o3/o4 models reject `temperature` and take `max_completion_tokens`."""
    name = model.lower()
    return "o3" in name or "o4" in name


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class CompletionClient:
    """Sends prompts to the model service and returns text plus token usage.

    Args:
        api_key: Bearer token; defaults to settings.OPENAI_API_KEY.
        base_url: Service root; defaults to settings.OPENAI_BASE_URL.
        policy: Retry policy; defaults to the configured one.
        should_cancel: Cancellation query polled around backoff sleeps.
        on_retry: Observability hook, called as on_retry(attempt, delay_ms, error).
        http_client: Injected httpx client (tests); the shared client otherwise.
        usage: Shared usage counter; a fresh one otherwise.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        policy: RetryPolicy | None = None,
        should_cancel: CancelQuery | None = None,
        on_retry: RetryHook | None = None,
        http_client: httpx.AsyncClient | None = None,
        usage: UsageCounter | None = None,
    ) -> None:
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.executor = RetryExecutor(
            policy or RetryPolicy.from_settings(settings),
            on_retry=on_retry,
            should_cancel=should_cancel,
        )
        self.usage = usage or UsageCounter()
        self._http_client = http_client

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http_client or _get_client()

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise AuthError("No API key configured (set OPENAI_API_KEY)")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def build_body(request: CompletionRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "messages": request.messages,
        }
        if uses_reasoning_params(request.model):
            body["max_completion_tokens"] = request.max_tokens
        else:
            body["max_tokens"] = request.max_tokens
            if request.temperature is not None:
                body["temperature"] = request.temperature
        return body

    async def complete(self, request: CompletionRequest) -> Completion:
        """Run one chat completion with retry + backoff.

        Raises:
            AuthError: Missing or rejected key (never retried).
            LLMError: Terminal or exhausted failures.
            PipelineCancelled: Cancellation observed while backing off.
        """
        headers = self._headers()
        body = self.build_body(request)
        url = f"{self.base_url}/chat/completions"

        async def _attempt() -> Completion:
            logger.info(
                "[%s] LLM call model=%s key=%s",
                request.caller, request.model, _mask_key(self.api_key),
            )
            try:
                response = await self.http.post(url, headers=headers, json=body)
            except httpx.TimeoutException as e:
                raise TransientNetworkError(f"LLM call timed out: {e}", status_code=408) from e
            except httpx.TransportError as e:
                raise TransientNetworkError(f"Network error: {e}") from e

            if response.status_code >= 400:
                raise _error_for_status(response, request.caller)

            try:
                data = response.json()
            except ValueError as e:
                raise TransientNetworkError(
                    "Malformed completion payload (not JSON)",
                    status_code=response.status_code,
                    body=response.text[:500],
                ) from e
            try:
                content = data["choices"][0]["message"]["content"] or ""
            except (KeyError, IndexError, TypeError) as e:
                raise TransientNetworkError("Malformed completion payload") from e
            content = content.strip()
            if not content:
                raise TransientNetworkError("Empty completion content")

            raw_usage = data.get("usage") or {}
            usage = TokenUsage(
                prompt_tokens=int(raw_usage.get("prompt_tokens") or 0),
                completion_tokens=int(raw_usage.get("completion_tokens") or 0),
            )
            self.usage.track_completion(request.model, usage)
            logger.info("[%s] LLM response OK, length=%d", request.caller, len(content))
            return Completion(text=content, model=request.model, usage=usage)

        return await self.executor.execute(_attempt, is_retryable)

    async def speech(
        self,
        text: str,
        *,
        voice: str,
        model: str | None = None,
        speed: float | None = None,
        instructions: str | None = None,
        response_format: str = "mp3",
    ) -> bytes:
        """Synthesize one utterance via /audio/speech and return the encoded bytes."""
        headers = self._headers()
        model = model or settings.TTS_MODEL
        body: dict[str, Any] = {
            "model": model,
            "voice": voice,
            "input": text,
            "response_format": response_format,
        }
        if speed is not None:
            body["speed"] = speed
        if instructions and "gpt-4o" in model:
            body["instructions"] = instructions
        url = f"{self.base_url}/audio/speech"

        async def _attempt() -> bytes:
            try:
                response = await self.http.post(url, headers=headers, json=body)
            except httpx.TimeoutException as e:
                raise TransientNetworkError(f"TTS call timed out: {e}", status_code=408) from e
            except httpx.TransportError as e:
                raise TransientNetworkError(f"Network error: {e}") from e
            if response.status_code >= 400:
                raise _error_for_status(response, "tts")
            audio = response.content
            if not audio:
                raise TransientNetworkError("Empty audio payload")
            self.usage.track_speech(model, len(text))
            return audio

        return await self.executor.execute(_attempt, is_retryable)


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------

class LLMError(Exception):
    """Structured LLM error with status code and retriable flag."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        retriable: bool = False,
        body: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retriable = retriable
        self.body = body


class TransientNetworkError(LLMError):
    """Timeouts, dropped connections, 408/5xx and empty responses."""

    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        super().__init__(message, status_code=status_code, retriable=True, body=body)


class RateLimitError(LLMError):
    """HTTP 429. Retried with backoff like any transient failure."""

    def __init__(self, message: str, status_code: int = 429, body: str = ""):
        super().__init__(message, status_code=status_code, retriable=True, body=body)


class AuthError(LLMError):
    """Missing or rejected credentials. Never retried."""

    def __init__(self, message: str, status_code: int = 401, body: str = ""):
        super().__init__(message, status_code=status_code, retriable=False, body=body)
