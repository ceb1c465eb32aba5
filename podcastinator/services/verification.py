"""Decoding of reviewer-model output into VerificationResult.

Decoding order:
  1. the first balanced ``{...}`` block in the text, validated against
     the VerificationResult schema;
  2. no brace at all: a positive-keyword scan decides validity;
  3. an unbalanced ``{`` or a JSON block that fails to decode or validate raises
     ValidationParseError, which callers turn into a passing result
     (`unparsable_result()`), so a broken reviewer never blocks content.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Iterable

from pydantic import ValidationError

from .base import VerificationResult

logger = logging.getLogger(__name__)

SCRIPT_POSITIVE_KEYWORDS = ("valid", "coherent", "good")
OUTLINE_POSITIVE_KEYWORDS = ("valid", "accurate", "good")

API_ERROR_SUMMARY = "Verification skipped due to API error. Using original section."
UNPARSABLE_SUMMARY = "Unable to parse verification result. Using original section."

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


class ValidationParseError(ValueError):
    """Reviewer output contained JSON that could not be decoded or validated."""


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in `text`, or None.

    Braces inside JSON string literals are ignored. Fenced code blocks are
    searched first since reviewers often wrap their JSON in them.
    """
    if not text:
        return None
    m = _FENCE_RE.search(text)
    if m and "{" in m.group(1):
        found = _scan_balanced(m.group(1))
        if found is not None:
            return found
    return _scan_balanced(text)


def _scan_balanced(text: str) -> str | None:
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def parse_verification(
    text: str,
    positive_keywords: Iterable[str] = SCRIPT_POSITIVE_KEYWORDS,
) -> VerificationResult:
    """Decode reviewer output.

    Raises:
        ValidationParseError: A JSON block was found but is not a valid
            verification object.
    """
    block = extract_json_object(text)
    if block is None:
        if "{" in text:
            raise ValidationParseError("Verification JSON is truncated or unbalanced")
        lowered = text.lower()
        is_positive = any(k in lowered for k in positive_keywords)
        logger.info("Verification response had no JSON; keyword scan says valid=%s", is_positive)
        excerpt = text[:200] + "..."
        return VerificationResult(is_valid=is_positive, feedback=excerpt, summary=excerpt)

    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        raise ValidationParseError(f"Malformed verification JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationParseError("Verification JSON is not an object")
    try:
        result = VerificationResult.model_validate(data)
    except ValidationError as e:
        raise ValidationParseError(f"Verification JSON failed schema validation: {e}") from e

    if not result.summary and result.feedback:
        result.summary = result.feedback
    elif not result.feedback and result.summary:
        result.feedback = result.summary
    return result


# ---------------------------------------------------------------------------
# Fail-open constructors
# ---------------------------------------------------------------------------

def api_error_result() -> VerificationResult:
    return VerificationResult(
        is_valid=True,
        feedback=API_ERROR_SUMMARY,
        summary=API_ERROR_SUMMARY,
        fallback=True,
    )


def unparsable_result() -> VerificationResult:
    return VerificationResult(
        is_valid=True,
        feedback=UNPARSABLE_SUMMARY,
        summary=UNPARSABLE_SUMMARY,
        fallback=True,
    )


def format_feedback(result: VerificationResult) -> str:
    """Render a verification result as the JSON feedback block of an improve prompt."""
    payload = {
        "isValid": result.is_valid,
        "issues": [issue.model_dump() for issue in result.issues or []],
        "feedback": result.feedback,
        "summary": result.summary,
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)
