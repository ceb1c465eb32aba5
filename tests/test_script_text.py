"""Script text hygiene, segment parsing and continuity helpers."""
from podcastinator.services.continuity import ContinuityContext, parse_summary_response
from podcastinator.services.script_text import (
    clean_script_text,
    extract_last_exchanges,
    parse_segments,
    word_count,
)


def test_clean_normalizes_labels_and_separators():
    raw = "```markdown\nHOST: Welcome to the show!\n[laughs]\nGUEST: Thanks for having me.\n```"

    cleaned = clean_script_text(raw)

    assert cleaned == "---\nHOST:\nWelcome to the show!\n\n---\nGUEST:\nThanks for having me."


def test_clean_maps_persona_names_and_attributions():
    raw = "Ana: Hi everyone.\nDr. Lee: Hello.\nHOST (Ana): Let's begin.\n**GUEST**: Sure."

    segments = parse_segments(clean_script_text(raw, host_name="Ana", guest_name="Dr. Lee"))

    assert [s.speaker for s in segments] == ["HOST", "GUEST", "HOST", "GUEST"]
    assert [s.text for s in segments] == ["Hi everyone.", "Hello.", "Let's begin.", "Sure."]


def test_clean_drops_trailing_separator():
    cleaned = clean_script_text("---\nHOST:\nBye.\n---\n")
    assert cleaned == "---\nHOST:\nBye."


def test_parse_segments_skips_empty_turns():
    text = "---\nHOST:\nOne.\n\n---\nGUEST:\n\n---\nHOST:\nTwo."
    assert [s.text for s in parse_segments(text)] == ["One.", "Two."]


def test_extract_last_exchanges():
    text = "\n\n".join(
        f"---\nHOST:\nQuestion {i}.\n\n---\nGUEST:\nAnswer {i}." for i in range(1, 5)
    )

    tail = extract_last_exchanges(text, 2)

    assert "Question 3." in tail and "Answer 4." in tail
    assert "Question 2." not in tail
    assert extract_last_exchanges("---\nHOST:\nAlone.", 2) == ""


def test_word_count_ignores_labels():
    assert word_count("---\nHOST:\nOne two three.\n\n---\nGUEST:\nFour five.") == 5


def test_parse_summary_response():
    summary, topics = parse_summary_response(
        "SUMMARY: They discussed the discovery.\n\nTOPICS COVERED:\n- Fleming's lab\n* 1928\n2) Mold"
    )

    assert summary == "They discussed the discovery."
    assert topics == ["Fleming's lab", "1928", "Mold"]


def test_parse_summary_without_markers():
    summary, topics = parse_summary_response("Just a plain recap.")
    assert summary == "Just a plain recap."
    assert topics == []


def test_continuity_dedupes_topics():
    ctx = ContinuityContext()
    ctx.record("1", "Intro", "First summary", ["Penicillin", "Fleming"])
    ctx.record("2", "Lab", "Second summary", ["penicillin", "Mold"])
    ctx.record("2", "Lab", "", ["Late topic"])

    assert [t.topics for t in ctx.topics] == [("Penicillin", "Fleming"), ("Mold",)]
    assert "Section 2 (Lab): Second summary" in ctx.summaries_text()
    assert "  - Mold" in ctx.topics_text()


def test_continuity_advance():
    ctx = ContinuityContext()
    ctx.advance("full text", "tail")
    assert ctx.previous_text == "full text"
    assert ctx.last_exchanges == "tail"
