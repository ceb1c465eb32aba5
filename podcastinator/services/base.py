"""Shared data models for the generate / verify / improve pipelines."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["critical", "major", "minor", "unknown"]

_KNOWN_SEVERITIES = {"critical", "major", "minor"}


# ---------------------------------------------------------------------------
# Verification contract: JSON emitted by the reviewer model
# ---------------------------------------------------------------------------

class VerificationIssue(BaseModel):
    """A single problem reported by a verification pass."""
    model_config = ConfigDict(extra="ignore")

    severity: Severity = "unknown"
    category: str = ""
    description: str = ""
    evidence: str = ""
    fix: str = ""
    actions: list[str] = Field(default_factory=list)
    notes: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text if text in _KNOWN_SEVERITIES else "unknown"

    @field_validator("actions", mode="before")
    @classmethod
    def _coerce_actions(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value]

    @field_validator("category", "description", "evidence", "fix", "notes", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class VerificationResult(BaseModel):
    """Outcome of one verification call.

    `issues` is None when the reviewer sent no issues array at all, which
    scores differently from an explicit empty list.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_valid: bool = Field(False, alias="isValid")  # absent flag means invalid
    issues: list[VerificationIssue] | None = None
    feedback: str = ""
    summary: str = ""
    fallback: bool = False  # True when produced by the fail-open path

    @field_validator("feedback", "summary", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def issue_count(self) -> int:
        return len(self.issues or [])

    @property
    def headline(self) -> str:
        return self.summary or self.feedback


# ---------------------------------------------------------------------------
# Pipeline records
# ---------------------------------------------------------------------------

class GenerationAttempt(BaseModel):
    """One generated-and-verified candidate."""
    attempt_index: int
    text: str
    verification: VerificationResult
    score: int = Field(ge=0)


class PipelineOutcome(BaseModel):
    """Result of a SectionPipeline run."""
    chosen_text: str
    chosen_score: int
    chosen_index: int
    attempts: list[GenerationAttempt]

    @property
    def total_attempts(self) -> int:
        return len(self.attempts)


# ---------------------------------------------------------------------------
# Pipeline event model: for SSE streaming
# ---------------------------------------------------------------------------

class PipelineEvent(BaseModel):
    """An event emitted during pipeline execution."""
    event_type: str  # step_start, step_complete, progress, section_committed, pipeline_complete, cancelled, error
    step: str | None = None  # generate, verify, improve, summary, cross_section
    label: str | None = None
    index: int | None = None  # section position, 0-based
    total: int | None = None
    attempt: int | None = None
    percent: float | None = None
    result: dict[str, Any] | None = None
    text: str | None = None
    error: str | None = None
