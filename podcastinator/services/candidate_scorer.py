"""Severity scoring and best-candidate selection.

Pure functions: no I/O, no logging, no mutation of their inputs.
"""

from __future__ import annotations

from typing import Iterable

from .base import GenerationAttempt, VerificationResult

SEVERITY_WEIGHTS: dict[str, int] = {
    "critical": 5,
    "major": 3,
    "minor": 1,
    "unknown": 2,
}


def score(result: VerificationResult) -> int:
    """Lower is better. 0 means nothing to fix.

    With an issues array the score is the sum of severity weights; without
    one it is 0 for a valid result and 1 for an invalid one.
    """
    if result.issues is None:
        return 0 if result.is_valid else 1
    return sum(SEVERITY_WEIGHTS.get(issue.severity, SEVERITY_WEIGHTS["unknown"]) for issue in result.issues)


def _rank(candidate: GenerationAttempt) -> tuple[int, int, int]:
    # Latest attempt wins the final tie, hence the negated index.
    return candidate.score, candidate.verification.issue_count, -candidate.attempt_index


def select_best(candidates: Iterable[GenerationAttempt]) -> GenerationAttempt:
    """Pick the candidate with the lowest score.

    Ties go to fewer issues, then to the most recent attempt, so the result
    does not depend on the order of `candidates`.

    Raises:
        ValueError: If there are no candidates.
    """
    pool = list(candidates)
    if not pool:
        raise ValueError("select_best() needs at least one candidate")
    return min(pool, key=_rank)
