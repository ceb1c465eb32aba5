"""Outline text -> ordered list of leaf sections.

Outline format (one or more headings per ``---``-separated block):

    ---
    1. Introduction
    Duration: 3 minutes
    Overview: ...
    KEY FACTS:
    - ...
    UNIQUE FOCUS: ...
    CARRYOVER: ...
    ---
    1.1 Subsection
    Duration: 90 seconds
    ---

Only leaf headings carrying an explicit duration become sections. A heading
is a parent when another heading's number starts with ``<number>.``.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_SEPARATOR_RE = re.compile(r"^\s*---\s*$", re.MULTILINE)
_HEADING_RE = re.compile(r"^[ \t]*(\d+(?:\.\d+)*)\.?[ \t]+(\S[^\r\n]*?)[ \t]*$", re.MULTILINE)
_DURATION_RE = re.compile(
    r"Duration:\s*(\d+(?:\.\d+)?)\s*(seconds?|secs?|s\b|minutes?|mins?|m\b)?",
    re.IGNORECASE,
)
_OVERVIEW_RE = re.compile(r"Overview:\s*([^\r\n]+)", re.IGNORECASE)
_KEY_FACTS_RE = re.compile(
    r"KEY FACTS:\s*(.*?)(?=\n\s*UNIQUE FOCUS:|\n\s*CARRYOVER:|\Z)", re.DOTALL,
)
_UNIQUE_FOCUS_RE = re.compile(r"UNIQUE FOCUS:\s*(.*?)(?=\n\s*CARRYOVER:|\n\s*\n|\Z)", re.DOTALL)
_CARRYOVER_RE = re.compile(r"CARRYOVER:\s*(.*?)(?=\n\s*\n|\Z)", re.DOTALL)

NO_OVERVIEW = "No overview provided"
NO_KEY_FACTS = "No specific key facts provided"
NO_UNIQUE_FOCUS = "No unique focus specified"
NO_CARRYOVER = "No carryover topics"


class Section(BaseModel):
    """One leaf section of a parsed outline. Immutable."""
    model_config = ConfigDict(frozen=True)

    number: str
    title: str
    duration_minutes: float
    overview: str = NO_OVERVIEW
    key_facts: str = NO_KEY_FACTS
    unique_focus: str = NO_UNIQUE_FOCUS
    carryover: str = NO_CARRYOVER
    content: str = ""

    def words_target(self, words_per_minute: int = 160) -> int:
        return round(self.duration_minutes * words_per_minute)

    def is_parent_of(self, number: str) -> bool:
        return number.startswith(f"{self.number}.")


def parse_duration(text: str) -> float | None:
    """Minutes from the first ``Duration:`` field, or None when absent."""
    m = _DURATION_RE.search(text)
    if not m:
        return None
    value = float(m.group(1))
    unit = (m.group(2) or "").lower()
    if unit.startswith("s"):
        return value / 60.0
    return value


def _field(pattern: re.Pattern[str], text: str, default: str) -> str:
    m = pattern.search(text)
    if not m:
        return default
    value = m.group(1).strip()
    return value or default


def _build_section(number: str, title: str, duration: float, content: str) -> Section:
    return Section(
        number=number,
        title=title.strip(),
        duration_minutes=duration,
        overview=_field(_OVERVIEW_RE, content, NO_OVERVIEW),
        key_facts=_field(_KEY_FACTS_RE, content, NO_KEY_FACTS),
        unique_focus=_field(_UNIQUE_FOCUS_RE, content, NO_UNIQUE_FOCUS),
        carryover=_field(_CARRYOVER_RE, content, NO_CARRYOVER),
        content=content.strip(),
    )


def _is_parent(number: str, others: list[str]) -> bool:
    prefix = f"{number}."
    return any(o.startswith(prefix) for o in others)


def _parse_block(block: str, block_index: int) -> list[Section]:
    headings = list(_HEADING_RE.finditer(block))

    if not headings:
        duration = parse_duration(block)
        if duration is None:
            return []
        number = str(block_index + 1)
        logger.debug("Block %d has no heading; using synthetic section %s", block_index, number)
        return [_build_section(number, f"Section {number}", duration, block)]

    numbers = [h.group(1) for h in headings]
    sections: list[Section] = []
    for i, heading in enumerate(headings):
        number = heading.group(1)
        if _is_parent(number, numbers):
            continue
        end = headings[i + 1].start() if i + 1 < len(headings) else len(block)
        chunk = block[heading.start():end]
        duration = parse_duration(chunk)
        if duration is None:
            logger.debug("Heading %s has no duration; skipped", number)
            continue
        sections.append(_build_section(number, heading.group(2), duration, chunk))
    return sections


def parse_outline(text: str) -> list[Section]:
    """Parse outline text into leaf sections, in document order."""
    if not text or not text.strip():
        return []

    blocks = [b for b in _SEPARATOR_RE.split(text) if b.strip()]
    candidates: list[Section] = []
    for index, block in enumerate(blocks):
        candidates.extend(_parse_block(block, index))

    # Parent/child pairs can span blocks ("1." in one block, "1.1" in the next).
    numbers = [s.number for s in candidates]
    leaves = [s for s in candidates if not _is_parent(s.number, numbers)]

    logger.info(
        "Parsed outline: %d block(s), %d leaf section(s), %.1f min total",
        len(blocks), len(leaves), total_duration(leaves),
    )
    return leaves


def total_duration(sections: list[Section]) -> float:
    """Run-wide pacing target in minutes."""
    return sum(s.duration_minutes for s in sections)
