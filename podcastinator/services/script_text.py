"""Script text conventions: ``---`` blocks labelled ``HOST:`` / ``GUEST:``."""

from __future__ import annotations

import re
from dataclasses import dataclass

HOST = "HOST"
GUEST = "GUEST"

_FENCE_LINE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*$", re.MULTILINE)
_ATTRIBUTED_LABEL_RE = re.compile(r"^[ \t]*(HOST|GUEST)[ \t]*\([^)\n]*\)[ \t]*:", re.MULTILINE)
_STAGE_DIRECTION_RE = re.compile(r"\[[^\]\n]*\]")
_LABEL_LINE_RE = re.compile(r"^[ \t]*(?:\*\*)?(HOST|GUEST)(?:\*\*)?[ \t]*:[ \t]*", re.MULTILINE | re.IGNORECASE)
_SEGMENT_SPLIT_RE = re.compile(r"^---[ \t]*\n(HOST|GUEST):", re.MULTILINE)
_EXTRA_BLANKS_RE = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class DialogueSegment:
    speaker: str  # HOST or GUEST
    text: str


def _relabel_names(text: str, host_name: str | None, guest_name: str | None) -> str:
    for name, label in ((host_name, HOST), (guest_name, GUEST)):
        if not name or name.upper() in (HOST, GUEST):
            continue
        pattern = re.compile(rf"^[ \t]*(?:\*\*)?{re.escape(name)}(?:\*\*)?[ \t]*:", re.MULTILINE | re.IGNORECASE)
        text = pattern.sub(f"{label}:", text)
    return text


def clean_script_text(text: str, host_name: str | None = None, guest_name: str | None = None) -> str:
    """Normalize model output to the ``---`` + ``HOST:``/``GUEST:`` block format.

    Removes code fences, stray ``markdown`` tags and bracketed stage
    directions; turns ``HOST (Ana):`` and ``Ana:`` labels into ``HOST:``.
    """
    text = _FENCE_LINE_RE.sub("", text or "")
    text = re.sub(r"^\s*(?:markdown|md)\s*$", "", text, flags=re.MULTILINE | re.IGNORECASE)
    text = _relabel_names(text, host_name, guest_name)
    text = _ATTRIBUTED_LABEL_RE.sub(lambda m: f"{m.group(1)}:", text)
    text = _STAGE_DIRECTION_RE.sub("", text)
    text = _LABEL_LINE_RE.sub(lambda m: f"{m.group(1).upper()}:\n", text)

    # Every speaker turn starts its own block.
    labels = (f"{HOST}:", f"{GUEST}:")
    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped in labels:
            while lines and lines[-1].strip() in ("", "---"):
                lines.pop()
            lines.extend(["", "---", stripped])
        elif not stripped and lines and lines[-1] in labels:
            continue
        else:
            lines.append(line.rstrip())
    while lines and lines[-1].strip() in ("", "---"):
        lines.pop()

    result = _EXTRA_BLANKS_RE.sub("\n\n", "\n".join(lines)).strip()
    if result and not result.startswith("---"):
        result = f"---\n{result}"
    return result


def parse_segments(text: str) -> list[DialogueSegment]:
    """Split a script into speaker turns, skipping empty ones."""
    parts = _SEGMENT_SPLIT_RE.split(text or "")
    segments: list[DialogueSegment] = []
    for i in range(1, len(parts) - 1, 2):
        body = parts[i + 1].strip()
        if body:
            segments.append(DialogueSegment(speaker=parts[i], text=body))
    return segments


def format_segments(segments: list[DialogueSegment]) -> str:
    return "\n\n".join(f"---\n{s.speaker}:\n{s.text}" for s in segments)


def extract_last_exchanges(text: str, exchange_count: int = 2) -> str:
    """Last `exchange_count` HOST+GUEST pairs, for seamless continuation."""
    segments = parse_segments(text)
    pairs = min(exchange_count, len(segments) // 2)
    if pairs <= 0:
        return ""
    return format_segments(segments[-pairs * 2:])


def word_count(text: str) -> int:
    """Spoken words only: labels and separators are not counted."""
    body = _SEGMENT_SPLIT_RE.sub("", text or "")
    body = re.sub(r"^---\s*$", "", body, flags=re.MULTILINE)
    return len(body.split())
