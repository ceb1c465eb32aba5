"""Prompt builders for outline generation, verification and improvement."""

from __future__ import annotations

from podcastinator.schemas.podcast import PodcastBrief

from .manager import PromptManager

_OUTLINE_SYSTEM = """\
You are a podcast outline generator.

Create a structured outline for a discussion between a host named "{host_name}"{host_personality}
and a guest named "{guest_name}"{guest_personality}.

IMPORTANT: the whole podcast must last {duration} minutes. Give every section a
duration so that all durations add up to exactly {duration} minutes.

Follow this EXACT format, with '---' separators, so it can be parsed:

---
1. [Section Title]
Duration: [minutes]
Overview: [what this section discusses]
KEY FACTS:
- [3-5 specific facts, concepts or points to cover]
UNIQUE FOCUS: [what makes this section distinct]
CARRYOVER: [topics that build on earlier sections, or "None"]
---
1.1. [Subsection Title]
Duration: [minutes]
Overview: [...]
KEY FACTS:
- [...]
UNIQUE FOCUS: [...]
CARRYOVER: [...]
---

Rules:
1. Use a clear hierarchy of numbered sections and subsections (1, 1.1, 2, ...).
2. Only the sections that are actually voiced carry a duration; a parent section's
   time is the sum of its subsections.
3. Put a '---' line between every two sections.
4. Spread topics to minimize redundancy; keep a natural flow.
5. Do NOT write dialogue. This is an outline only."""


def build_outline_system(brief: PodcastBrief) -> str:
    template = PromptManager.resolve("outline_system", _OUTLINE_SYSTEM, brief.style)
    host_p = f" (personality: {brief.host.personality})" if brief.host.personality else ""
    guest_p = f" (personality: {brief.guest.personality})" if brief.guest.personality else ""
    return template.format(
        host_name=brief.host.display_name("Host"),
        host_personality=host_p,
        guest_name=brief.guest.display_name("Guest"),
        guest_personality=guest_p,
        duration=brief.duration_minutes,
    )


def build_outline_user(brief: PodcastBrief) -> str:
    if brief.focus.strip():
        opening = (
            "Generate a podcast outline based on the following focus and overall "
            f'instructions: "{brief.focus.strip()}"'
        )
        coverage = "focuses specifically on the requested topic"
    else:
        opening = "Generate a podcast outline based on the following document content."
        coverage = "covers the key information from this document"
    return f"""{opening}

Document content:
```markdown
{brief.document_content}
```

Create a well-organized outline that {coverage} in a conversational podcast format. The outline MUST:
1) Begin with an Introduction section that sets context and introduces the guest.
2) End with an Outro/Conclusion section that wraps up, thanks the guest and signs off.
3) Total exactly {brief.duration_minutes} minutes, with every section's duration specified."""


_OUTLINE_VERIFY_SYSTEM = """\
You are a podcast outline quality reviewer. Check a generated outline for:

1. STRUCTURE: logical sections and subsections.
2. TIMING: section durations add up to the target duration.
3. COVERAGE: the main topics get appropriate emphasis.
4. FOCUS: alignment with any requested focus or steer.
5. FORMAT: numbered headings, Duration lines and '---' separators.

Respond with JSON ONLY:
{
  "isValid": boolean,
  "issues": [
    {"category": string, "severity": "critical"|"major"|"minor", "description": string, "fix": string}
  ],
  "feedback": string
}

A high-quality outline gets {"isValid": true, "issues": [], "feedback": "Outline is accurate and well-structured."}"""


def build_outline_verify_system(style: str = "default") -> str:
    return PromptManager.resolve("outline_verify", _OUTLINE_VERIFY_SYSTEM, style)


def build_outline_verify_user(outline_text: str, brief: PodcastBrief, parsed_minutes: float) -> str:
    focus = f"Podcast focus: {brief.focus}\n" if brief.focus.strip() else ""
    return f"""Please review this podcast outline for quality and structure.

Target podcast duration: {brief.duration_minutes} minutes
Leaf-section durations parsed from the outline add up to: {parsed_minutes:g} minutes
{focus}
--- GENERATED OUTLINE ---
```markdown
{outline_text}
```

--- ORIGINAL DOCUMENT CONTENT ---
```markdown
{brief.document_content}
```

Respond in the required JSON format."""


def build_outline_improve_system(brief: PodcastBrief) -> str:
    return build_outline_system(brief) + """

OUTLINE EDITING RULES:
1. Change only the sections the feedback mentions; keep everything else as is.
2. Keep the numbering scheme, separators and level of detail.
3. Keep all durations adding up to the target length.
Rewrites beyond the feedback will be rejected."""


def build_outline_improve_user(outline_text: str, feedback: str, brief: PodcastBrief) -> str:
    section_count = max(outline_text.count("---") - 1, 1)
    return f"""Make PRECISE edits to this podcast outline to address the feedback, preserving its structure.

Target podcast duration: {brief.duration_minutes} minutes

--- ORIGINAL OUTLINE ---
```markdown
{outline_text}
```

--- FEEDBACK ON ISSUES ---
{feedback}

--- ORIGINAL DOCUMENT CONTENT ---
```markdown
{brief.document_content}
```

Keep approximately {section_count} sections, all '---' separators and numbering, and make the
durations add up to exactly {brief.duration_minutes} minutes. Return the COMPLETE edited outline."""
