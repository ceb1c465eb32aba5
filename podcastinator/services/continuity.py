"""Cross-section continuity: what has been said so far in a run."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_SUMMARY_RE = re.compile(r"SUMMARY:\s*(.*?)(?=\n\s*\n|\n?TOPICS COVERED:|\Z)", re.DOTALL)
_TOPICS_RE = re.compile(r"TOPICS COVERED:\s*(.*?)(?=\n\s*\n|\Z)", re.DOTALL)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


@dataclass(frozen=True)
class SectionSummary:
    number: str
    title: str
    summary: str


@dataclass(frozen=True)
class SectionTopics:
    number: str
    title: str
    topics: tuple[str, ...]


def parse_summary_response(text: str) -> tuple[str, list[str]]:
    """Split a ``SUMMARY: ... TOPICS COVERED: - ...`` response.

    Without a SUMMARY marker the whole response is the summary.
    """
    text = (text or "").strip()
    m = _SUMMARY_RE.search(text)
    summary = m.group(1).strip() if m else text
    topics: list[str] = []
    t = _TOPICS_RE.search(text)
    if t:
        for line in t.group(1).splitlines():
            topic = _BULLET_RE.sub("", line).strip()
            if topic:
                topics.append(topic)
    return summary, topics


@dataclass
class ContinuityContext:
    """Grows monotonically over a run; re-injected into every later prompt."""
    summaries: list[SectionSummary] = field(default_factory=list)
    topics: list[SectionTopics] = field(default_factory=list)
    last_exchanges: str = ""
    previous_text: str = ""

    def _seen_topics(self) -> set[str]:
        return {t.casefold() for entry in self.topics for t in entry.topics}

    def record(self, number: str, title: str, summary: str, topics: list[str]) -> None:
        """Append one section's synopsis and its not-yet-seen topics."""
        if summary:
            self.summaries.append(SectionSummary(number, title, summary))
        if any(entry.number == number for entry in self.topics):
            return
        seen = self._seen_topics()
        fresh: list[str] = []
        for topic in topics:
            key = topic.casefold()
            if key not in seen:
                seen.add(key)
                fresh.append(topic)
        if fresh:
            self.topics.append(SectionTopics(number, title, tuple(fresh)))

    def advance(self, chosen_text: str, last_exchanges: str) -> None:
        """Remember the finalized text of the section just completed."""
        self.previous_text = chosen_text
        self.last_exchanges = last_exchanges

    def summaries_text(self) -> str:
        return "\n".join(f"- Section {s.number} ({s.title}): {s.summary}" for s in self.summaries)

    def topics_text(self) -> str:
        blocks = []
        for entry in self.topics:
            lines = "\n".join(f"  - {t}" for t in entry.topics)
            blocks.append(f"- Section {entry.number} ({entry.title}):\n{lines}")
        return "\n".join(blocks)
