"""Prompt builders for script sections, conversation summaries and the
cross-section review."""

from __future__ import annotations

from podcastinator.schemas.podcast import Character, PodcastBrief

from .manager import PromptManager

# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

_SCRIPT_SYSTEM = """\
# Role
You are an expert podcast dialogue writer. You write vivid, engaging and
natural dialogue between a host and a guest, respecting each persona and
what each of them is allowed to know.

# Personas

## HOST
{host_block}
**Information available**: knows the outline and what has been said so far.
Does not cite document specifics unless the GUEST brings them in.

## GUEST
{guest_block}
**Information available**: uses the ground-truth facts naturally as personal
knowledge (never says "the document says").
{document_block}{focus_block}
# Output format (CRITICAL)
- Every speaker turn is a block starting with '---' on a line by itself.
- The '---' line is immediately followed by 'HOST:' or 'GUEST:' on its own line, then the dialogue.
- No stage directions, sound cues, section headers, metadata or code fences.

# Duration discipline
- Write enough words to meet the section's target at {wpm} words per minute,
  using depth, examples and analogies where appropriate.
"""

_PART_INSTRUCTIONS = {
    "intro": """\
- This is the opening segment of the podcast. Start with HOST.
- Welcome listeners and state the overarching topic succinctly.
- Introduce the GUEST with 1-2 relevant credentials; the GUEST thanks briefly (1 line max).
- Set expectations: 1-2 sentences on what listeners will learn.
- Do NOT end with a question, conclusion, sign-off or summary; the next segment continues from here.""",
    "section": """\
- This is a middle segment: the guest is introduced and the theme is set.
- Continue the "Previous dialogue" seamlessly, starting with whichever speaker fits, steering toward this section's outline.
- Do NOT end with a question, conclusion, sign-off or summary; the next segment continues from here.""",
    "outro": """\
- This is the closing segment. Continue the "Previous dialogue" seamlessly.
- Give a brief recap: 2-3 concise takeaways from the episode.
- HOST thanks GUEST; GUEST offers a short closing remark with no new topics.
- End with a clear HOST sign-off to listeners.""",
}


def _persona_block(character: Character, fallback: str) -> str:
    lines = [f"**Name**: {character.display_name(fallback)}"]
    if character.personality:
        lines.append(f"**Personality**: {character.personality}")
    if character.speaking_style:
        lines.append(f"**Speaking style**: {character.speaking_style}")
    if character.backstory:
        lines.append(f"\n### Backstory\n{character.backstory}")
    return "\n".join(lines)


def language_instruction(language: str) -> str:
    return f"\n\nGenerate the script in {language} language."


def build_script_system(brief: PodcastBrief, wpm: int = 160) -> str:
    document_block = ""
    if brief.document_content.strip():
        document_block = (
            "\n# Ground truth\n- Implicitly accessible only to GUEST:\n"
            f"```markdown\n{brief.document_content}\n```\n"
        )
    focus_block = ""
    if brief.focus.strip():
        focus_block = f"\n# Focus / steer\n```markdown\n{brief.focus.strip()}\n```\n"

    template = PromptManager.resolve("script_system", _SCRIPT_SYSTEM, brief.style)
    prompt = template.format(
        host_block=_persona_block(brief.host, "Host"),
        guest_block=_persona_block(brief.guest, "Guest"),
        document_block=document_block,
        focus_block=focus_block,
        wpm=wpm,
    )
    return prompt + language_instruction(brief.language)


def build_section_user(
    section,
    *,
    part_type: str,
    total_duration: float,
    words_target: int,
    previous_dialogue: str = "",
    summaries: str = "",
    topics: str = "",
) -> str:
    parts = [
        f"# Task\nWrite the {part_type} of a podcast conversation following the system rules.",
        f"## Outline (reference only; do NOT copy wording)\n{section.content}",
        "## Section instructions\n"
        f"- Follow the outline and the system rules; target ~{words_target} words.\n"
        "- Do not re-explain topics that were already discussed; build on them only where the outline asks.\n"
        + _PART_INSTRUCTIONS.get(part_type, _PART_INSTRUCTIONS["section"]),
        f"## Title\n{section.title}",
        f"## Overview\n{section.overview}",
        f"## Key facts to cover\n{section.key_facts}",
        f"## Unique focus\n{section.unique_focus}",
        f"## Carryover\n{section.carryover}",
        "## Duration\n"
        f"This section target: {section.duration_minutes:g} minutes (~{words_target} words)\n"
        f"Total podcast duration: {total_duration:g} minutes",
    ]
    if previous_dialogue.strip():
        parts.append(f"## Previous dialogue (continue directly from here)\n{previous_dialogue}")
    if summaries.strip():
        parts.append(f"## Conversation so far (summaries)\n{summaries}")
    if topics.strip():
        parts.append(f"## Topics already covered\n{topics}")
    parts.append(
        "## Strict requirements\n"
        f"- Meet the target of ~{words_target} words with substantive, grounded detail.\n"
        "- HOST asks curious layperson questions; GUEST gives expert, grounded answers.\n"
        "- Use '---' separators and HOST:/GUEST: labels only.\n"
        "- Output ONLY the dialogue."
    )
    return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Conversation summary
# ---------------------------------------------------------------------------

_SUMMARY_SYSTEM = (
    "You are a structured analyzer of podcast conversations, producing concise "
    "summaries that keep later sections coherent and free of repetition."
)


def build_summary_system(style: str = "default") -> str:
    return PromptManager.resolve("conversation_summary", _SUMMARY_SYSTEM, style)


def build_summary_user(section_text: str) -> str:
    return f"""Summarize the following conversation section to support continuity:

1) SUMMARY: at most 150 words.
2) TOPICS: bullet list of specific topics and facts mentioned, worded close to how they appeared.

Format exactly:
SUMMARY: <text>

TOPICS COVERED:
- <topic 1>
- <topic 2>

Section:
{section_text}"""


# ---------------------------------------------------------------------------
# Section verification / improvement
# ---------------------------------------------------------------------------

_SECTION_VERIFY_SYSTEM = """\
You are a strict podcast script section reviewer. Check one generated section
against its outline section and the source document.

Priorities:
1) FACTS: claims must be grounded in the document. The guest may cite or derive from it without saying "the document".
2) OUTLINE: cover the section's Overview and KEY FACTS without copying outline wording.
3) CONVERSATION: natural flow, clear turns, no stage directions.
4) CONTINUITY: continue seamlessly from the PREVIOUS SECTION; do not repeat covered information.
5) CHARACTER: host asks layperson questions, guest answers as a grounded expert; voices stay consistent.
6) FORMAT: only '---' separators and HOST:/GUEST: labels.

Do NOT assess duration or word count; that is measured separately.

Respond with JSON ONLY:
{
  "isValid": boolean,
  "issues": [
    {
      "category": "FACTS"|"OUTLINE"|"CONVERSATION"|"SPEAKER_TURN"|"CONTINUITY"|"CHARACTER"|"FORMAT"|"DURATION",
      "severity": "critical"|"major"|"minor",
      "description": string,
      "evidence": string,
      "fix": string,
      "actions": [string],
      "notes": string
    }
  ],
  "feedback": string,
  "summary": string
}"""


def build_section_verify_system(style: str = "default") -> str:
    return PromptManager.resolve("script_section_verify", _SECTION_VERIFY_SYSTEM, style)


def build_section_verify_user(
    section,
    section_text: str,
    *,
    document_content: str,
    total_duration: float,
    words_target: int,
    previous_text: str = "",
) -> str:
    previous = f"\n--- PREVIOUS SECTION ---\n{previous_text}\n" if previous_text.strip() else ""
    return f"""Review a generated script section. Return JSON only as defined in the system prompt.

--- OUTLINE SECTION (reference) ---
{section.content}

Target duration: {section.duration_minutes:g} minutes (~{words_target} words)
Total podcast duration: {total_duration:g} minutes

--- DOCUMENT (ground truth) ---
{document_content}
{previous}
--- GENERATED SECTION ---
{section_text}
"""


_SECTION_IMPROVE_SYSTEM = """\
You are a targeted podcast script section editor.

Rules:
- Apply precise, minimal edits that fully address every feedback issue.
- Preserve unaffected dialogue; keep '---' separators and HOST:/GUEST: labels.
- Fix duration first: reach the target word count ({wpm} wpm) by adding grounded depth,
  examples and analogies to GUEST answers, or by tightening when too long.
- Apply each issue's "actions" where its "evidence" quotes point; if ambiguous, fix the first match.
- Keep natural alternation; never three turns in a row by the same speaker.
- Output ONLY the complete improved section, with no explanations or code fences."""


def build_section_improve_system(style: str = "default", wpm: int = 160) -> str:
    return PromptManager.resolve("script_section_improve", _SECTION_IMPROVE_SYSTEM, style).format(wpm=wpm)


def build_section_improve_user(
    section,
    section_text: str,
    feedback: str,
    *,
    document_content: str,
    words_target: int,
    current_words: int,
) -> str:
    return f"""Improve the section using the structured feedback. Output ONLY the improved dialogue.

Target duration: {section.duration_minutes:g} minutes (~{words_target} words); current length: {current_words} words.

--- OUTLINE SECTION (reference) ---
{section.content}

--- DOCUMENT (ground truth) ---
{document_content}

--- ORIGINAL SECTION ---
{section_text}

--- FEEDBACK (JSON) ---
{feedback}

--- CRITICAL REQUIREMENTS ---
- The final output must reach ~{words_target} words.
- Apply each issue's "actions" and "fix"; use the "evidence" quotes to locate the edit.
- Keep '---' separators and HOST:/GUEST: labels. No code fences or stage directions."""


# ---------------------------------------------------------------------------
# Cross-section review
# ---------------------------------------------------------------------------

_CROSS_VERIFY_SYSTEM = """\
You are a podcast script cross-section reviewer.

Scope: only whole-script issues spanning several sections. Do NOT fact-check
against the document; that was done per section.

Check:
1) REDUNDANCY: repetition across sections that adds nothing new.
2) TRANSITION: abrupt resets between sections.
3) CONTINUITY: references like "as we discussed" with no earlier support.
4) FLOW / CHARACTER: a natural overall arc and consistent voices.

Respond with JSON ONLY:
{
  "isValid": boolean,
  "issues": [
    {
      "category": "REDUNDANCY"|"TRANSITION"|"CONTINUITY"|"FLOW"|"CHARACTER",
      "severity": "critical"|"major"|"minor",
      "description": string,
      "evidence": string,
      "fix": string,
      "actions": [string],
      "notes": string
    }
  ],
  "feedback": string,
  "summary": string
}"""


def build_cross_verify_system(style: str = "default") -> str:
    return PromptManager.resolve("cross_section_verify", _CROSS_VERIFY_SYSTEM, style)


def build_cross_verify_user(script_text: str, outline_text: str, total_duration: float) -> str:
    return f"""Review ONLY cross-section issues and return JSON per the system schema.

--- OUTLINE ---
{outline_text}

--- FULL SCRIPT ---
{script_text}

Total podcast duration: {total_duration:g} minutes"""


_CROSS_IMPROVE_SYSTEM = """\
You are a cross-section script editor.

Rules:
- Fix ONLY the cross-section issues in the feedback: redundancy, transitions,
  continuity, speaker handoffs, flow and character consistency.
- When removing redundancy keep any new information, and compensate with grounded
  depth so the script keeps its original word count.
- Preserve unaffected dialogue; keep '---' separators and HOST:/GUEST: labels.
- Output ONLY the full improved script, with no explanations or code fences."""


def build_cross_improve_system(style: str = "default") -> str:
    return PromptManager.resolve("cross_section_improve", _CROSS_IMPROVE_SYSTEM, style)


def build_cross_improve_user(
    script_text: str,
    feedback: str,
    *,
    outline_text: str,
    document_content: str,
    total_duration: float,
    current_words: int,
) -> str:
    return f"""Apply cross-section improvements. Output ONLY the full improved script.
Keep the length close to the current {current_words} words.

--- OUTLINE ---
{outline_text}

--- DOCUMENT (ground truth) ---
{document_content}

--- ORIGINAL SCRIPT ---
{script_text}

--- FEEDBACK (JSON) ---
{feedback}

Total podcast duration: {total_duration:g} minutes"""
