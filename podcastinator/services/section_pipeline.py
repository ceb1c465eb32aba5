"""SectionPipeline: the generate -> verify -> improve state machine.

    GENERATE -> VERIFY -> DECIDE -> (IMPROVE -> VERIFY -> DECIDE)* -> DONE

One run produces an ordered, never-empty list of GenerationAttempts and
returns the best of them (CandidateScorer), not simply the last one.

Verification is fail-open: a reviewer call that errors, or output that
cannot be decoded, counts as a passing review. A failed improvement ends
the loop with the candidates gathered so far. Auth errors and generation
failures propagate; cancellation propagates as PipelineCancelled.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

from podcastinator.config import get_settings

from .base import GenerationAttempt, PipelineEvent, PipelineOutcome, VerificationResult
from .candidate_scorer import score, select_best
from .llm_client import AuthError, CompletionService, LLMError
from .progress import StageWeights
from .retry import CancelQuery, raise_if_cancelled
from .tasks.base import BaseContentTask
from .verification import ValidationParseError, api_error_result, parse_verification, unparsable_result

logger = logging.getLogger(__name__)
settings = get_settings()

EventHook = Callable[[PipelineEvent], Any]
ProgressHook = Callable[[float], Any]


class PipelineState(str, Enum):
    GENERATE = "generate"
    VERIFY = "verify"
    DECIDE = "decide"
    IMPROVE = "improve"
    DONE = "done"


async def maybe_await(fn: Callable, *args: Any) -> Any:
    result = fn(*args)
    if asyncio.iscoroutine(result):
        return await result
    return result


class SectionPipeline:
    """Drives one BaseContentTask through the state machine.

    Usage:
        pipeline = SectionPipeline(client, SectionScriptTask(...), max_attempts=3)
        outcome = await pipeline.run()
        outcome.chosen_text
    """

    def __init__(
        self,
        client: CompletionService,
        task: BaseContentTask,
        *,
        max_attempts: int | None = None,
        should_cancel: CancelQuery | None = None,
        on_event: EventHook | None = None,
        on_progress: ProgressHook | None = None,
        weights: StageWeights | None = None,
    ) -> None:
        self.client = client
        self.task = task
        self.max_attempts = settings.SECTION_MAX_ATTEMPTS if max_attempts is None else max_attempts
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.should_cancel = should_cancel
        self.on_event = on_event
        self.on_progress = on_progress
        self.weights = weights or StageWeights.from_settings(settings)
        self.state = PipelineState.GENERATE
        self.attempts: list[GenerationAttempt] = []

    # -- main loop -------------------------------------------------------------

    async def run(self) -> PipelineOutcome:
        name = self.task.name
        text = ""
        improve_rounds = 0
        self.state = PipelineState.GENERATE
        self.attempts = []
        logger.info("Pipeline START: %s (max_attempts=%d)", self.task.label, self.max_attempts)

        while self.state is not PipelineState.DONE:
            self._check_cancelled()

            if self.state is PipelineState.GENERATE:
                text = await self._generate()
                await self._report(self.weights.after_generate())
                self.state = PipelineState.VERIFY

            elif self.state is PipelineState.VERIFY:
                attempt_index = len(self.attempts) + 1
                verification = await self._verify(text, attempt_index)
                attempt = GenerationAttempt(
                    attempt_index=attempt_index,
                    text=text,
                    verification=verification,
                    score=score(verification),
                )
                self.attempts.append(attempt)
                logger.info(
                    "[%s] Attempt %d verified: valid=%s score=%d issues=%d%s",
                    name, attempt_index, verification.is_valid, attempt.score,
                    verification.issue_count, " (fallback)" if verification.fallback else "",
                )
                if improve_rounds == 0:
                    await self._report(self.weights.after_first_verify())
                else:
                    await self._report(self.weights.after_round(improve_rounds, self.max_attempts - 1))
                self.state = PipelineState.DECIDE

            elif self.state is PipelineState.DECIDE:
                latest = self.attempts[-1]
                if latest.verification.is_valid or latest.attempt_index >= self.max_attempts:
                    self.state = PipelineState.DONE
                else:
                    self.state = PipelineState.IMPROVE

            elif self.state is PipelineState.IMPROVE:
                improved = await self._improve(self.attempts[-1])
                if improved is None:
                    self.state = PipelineState.DONE
                else:
                    text = improved
                    improve_rounds += 1
                    self.state = PipelineState.VERIFY

        best = select_best(self.attempts)
        await self._report(1.0)
        logger.info(
            "Pipeline COMPLETE: %s chose attempt %d/%d (score=%d)",
            self.task.label, best.attempt_index, len(self.attempts), best.score,
        )
        return PipelineOutcome(
            chosen_text=best.text,
            chosen_score=best.score,
            chosen_index=best.attempt_index,
            attempts=list(self.attempts),
        )

    # -- states ------------------------------------------------------------------

    async def _generate(self) -> str:
        await self._emit("step_start", PipelineState.GENERATE, attempt=1)
        seed = self.task.initial_text()
        if seed is not None:
            text = seed
        else:
            completion = await self.client.complete(self.task.generate_request())
            self._check_cancelled()
            text = self.task.clean(completion.text)
        if not text.strip():
            raise LLMError(f"No content received for {self.task.label}")
        await self._emit("step_complete", PipelineState.GENERATE, attempt=1, result={"words": len(text.split())})
        return text

    async def _verify(self, text: str, attempt_index: int) -> VerificationResult:
        await self._emit("step_start", PipelineState.VERIFY, attempt=attempt_index)
        try:
            completion = await self.client.complete(self.task.verify_request(text))
        except AuthError:
            raise
        except LLMError as exc:
            logger.warning("[%s] Verification call failed, treating as valid: %s", self.task.name, exc)
            result = api_error_result()
        else:
            self._check_cancelled()
            try:
                result = parse_verification(completion.text, self.task.positive_keywords)
            except ValidationParseError as exc:
                logger.warning("[%s] %s; treating as valid", self.task.name, exc)
                result = unparsable_result()

        await self._emit(
            "step_complete", PipelineState.VERIFY, attempt=attempt_index,
            result={
                "is_valid": result.is_valid,
                "issues": result.issue_count,
                "score": score(result),
                "summary": result.headline,
                "fallback": result.fallback,
            },
        )
        return result

    async def _improve(self, attempt: GenerationAttempt) -> str | None:
        next_index = attempt.attempt_index + 1
        await self._emit("step_start", PipelineState.IMPROVE, attempt=next_index)
        try:
            completion = await self.client.complete(
                self.task.improve_request(attempt.text, attempt.verification),
            )
        except AuthError:
            raise
        except LLMError as exc:
            logger.warning("[%s] Improvement failed, keeping existing candidates: %s", self.task.name, exc)
            await self._emit("step_complete", PipelineState.IMPROVE, attempt=next_index, result={"applied": False})
            return None

        self._check_cancelled()
        improved = self.task.clean(completion.text)
        if not improved.strip():
            logger.warning("[%s] Improvement returned no content, keeping existing candidates", self.task.name)
            await self._emit("step_complete", PipelineState.IMPROVE, attempt=next_index, result={"applied": False})
            return None
        await self._emit("step_complete", PipelineState.IMPROVE, attempt=next_index, result={"applied": True})
        return improved

    # -- helpers -------------------------------------------------------------------

    def _check_cancelled(self) -> None:
        raise_if_cancelled(self.should_cancel, f"{self.task.name} {self.state.value}")

    async def _emit(self, event_type: str, step: PipelineState, **fields: Any) -> None:
        if self.on_event is None:
            return
        event = PipelineEvent(event_type=event_type, step=step.value, label=self.task.label, **fields)
        await maybe_await(self.on_event, event)

    async def _report(self, fraction: float) -> None:
        if self.on_progress is not None:
            await maybe_await(self.on_progress, fraction)
