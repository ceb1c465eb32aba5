"""Composite, monotonic progress accounting for one pipeline run.

The 0-100 budget of a script run is split into fixed shares:

    section_share (e.g. 80%)   divided evenly across the N leaf sections;
                               inside a section, StageWeights split
                               generate / verify / improve (60/30/10)
    remainder (e.g. 20%)       review_split of it for the cross-section
                               review, the rest for its improvement loop

Each run owns its own ProgressAccumulator; nothing is module-global.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from podcastinator.config import Settings

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    def publish(self, stage_id: str, percent: float) -> None: ...


class NotificationSink(Protocol):
    def info(self, message: str) -> None: ...
    def success(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...


class LoggingProgressSink:
    """Headless sink: progress goes to the log."""

    def publish(self, stage_id: str, percent: float) -> None:
        logger.info("Progress [%s]: %.0f%%", stage_id, percent)


class LoggingNotificationSink:
    """Headless notifications: routed to the log at matching levels."""

    def info(self, message: str) -> None:
        logger.info(message)

    def success(self, message: str) -> None:
        logger.info("SUCCESS: %s", message)

    def error(self, message: str) -> None:
        logger.error(message)


class CallbackNotificationSink:
    """Forwards notifications as (level, message) to a callable."""

    def __init__(self, callback: Callable[[str, str], None]) -> None:
        self._callback = callback

    def info(self, message: str) -> None:
        self._callback("info", message)

    def success(self, message: str) -> None:
        self._callback("success", message)

    def error(self, message: str) -> None:
        self._callback("error", message)


class CallbackProgressSink:
    """Forwards every publish to a plain callable (SSE queues, tests)."""

    def __init__(self, callback: Callable[[str, float], None]) -> None:
        self._callback = callback

    def publish(self, stage_id: str, percent: float) -> None:
        self._callback(stage_id, percent)


@dataclass(frozen=True)
class StageWeights:
    """Fractions of one pipeline run spent in each state. Should sum to 1."""
    generate: float = 0.6
    verify: float = 0.3
    improve: float = 0.1

    @classmethod
    def from_settings(cls, settings: Settings) -> StageWeights:
        return cls(
            generate=settings.PROGRESS_GENERATE_WEIGHT,
            verify=settings.PROGRESS_VERIFY_WEIGHT,
            improve=settings.PROGRESS_IMPROVE_WEIGHT,
        )

    def after_generate(self) -> float:
        return self.generate

    def after_first_verify(self) -> float:
        return self.generate + self.verify

    def after_round(self, round_no: int, max_rounds: int) -> float:
        """Fraction after improve/verify round `round_no` of `max_rounds`."""
        if max_rounds <= 0:
            return self.after_first_verify()
        done = min(round_no, max_rounds) / max_rounds
        return self.generate + self.verify + self.improve * done


class ProgressAccumulator:
    """Folds weighted sub-stage progress into one non-decreasing percentage."""

    def __init__(
        self,
        sink: ProgressSink | None = None,
        stage_id: str = "script",
        *,
        section_share: float = 0.8,
        review_split: float = 0.5,
    ) -> None:
        if not 0.0 <= section_share <= 1.0:
            raise ValueError("section_share must be within [0, 1]")
        if not 0.0 <= review_split <= 1.0:
            raise ValueError("review_split must be within [0, 1]")
        self.sink = sink or LoggingProgressSink()
        self.stage_id = stage_id
        self.section_share = section_share
        self.review_split = review_split
        self.total_sections = 0
        self.last_published = 0.0

    def reset(self, total_sections: int = 0) -> None:
        """Start a new run: the only way the value goes back to 0."""
        self.total_sections = total_sections
        self.last_published = 0.0
        self.sink.publish(self.stage_id, 0.0)

    def publish(self, percent: float) -> float:
        """Clamp to [last_published, 100] and forward. Returns the published value."""
        value = max(self.last_published, min(100.0, max(0.0, float(percent))))
        self.last_published = value
        self.sink.publish(self.stage_id, value)
        return value

    def section_progress(self, index: int, fraction: float) -> float:
        """Progress inside leaf section `index` (0-based), `fraction` in [0, 1]."""
        if self.total_sections <= 0:
            return self.publish(self.last_published)
        fraction = min(1.0, max(0.0, fraction))
        per_section = self.section_share * 100.0 / self.total_sections
        return self.publish(per_section * (index + fraction))

    def review_progress(self, fraction: float) -> float:
        """Progress of the cross-section pass, `fraction` in [0, 1].

        The pass runs the same state machine; its stage weights decide how
        much of `fraction` is review versus improvement.
        """
        fraction = min(1.0, max(0.0, fraction))
        base = self.section_share * 100.0
        return self.publish(base + (100.0 - base) * fraction)

    def review_weights(self) -> StageWeights:
        """Stage weights for the cross-section pass (no generation call)."""
        return StageWeights(generate=0.0, verify=self.review_split, improve=1.0 - self.review_split)

    def complete(self) -> float:
        return self.publish(100.0)
