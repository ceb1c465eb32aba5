"""ScriptPipelineOrchestrator: ordering, continuity, buffer, cross-section pass, cancellation."""
import asyncio

import pytest

from podcastinator.services.llm_client import LLMError
from podcastinator.services.outline_generator import generate_outline
from podcastinator.services.progress import CallbackNotificationSink, CallbackProgressSink, ProgressAccumulator
from podcastinator.services.retry import CancellationToken
from podcastinator.services.script_pipeline import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    ScriptBuffer,
    ScriptPipelineOrchestrator,
)

INVALID_MINOR = '{"isValid": false, "issues": [{"severity": "minor", "description": "Repeats the intro"}]}'
VALID = '{"isValid": true, "issues": []}'


@pytest.fixture
def notes():
    return []


@pytest.fixture
def percents():
    return []


@pytest.fixture
def make_orchestrator(fake_client, brief, outline_text, notes, percents):
    def _make(**kwargs):
        kwargs.setdefault("progress", ProgressAccumulator(CallbackProgressSink(lambda stage, pct: percents.append(pct))))
        kwargs.setdefault("notifications", CallbackNotificationSink(lambda level, msg: notes.append((level, msg))))
        return ScriptPipelineOrchestrator(
            fake_client,
            brief,
            outline_text=outline_text,
            section_max_attempts=3,
            cross_section_max_attempts=2,
            **kwargs,
        )
    return _make


def _user_prompt(request):
    return request.messages[1]["content"]


def test_sections_run_in_order_then_cross_section(fake_client, make_orchestrator):
    result = asyncio.run(make_orchestrator().run())

    assert result.status == STATUS_COMPLETED
    assert result.sections_completed == result.total_sections == 3
    assert fake_client.callers() == [
        "section:1:generate", "section:1:verify", "summary:1",
        "section:2:generate", "section:2:verify", "summary:2",
        "section:3:generate", "section:3:verify",
        "cross_section:verify",
    ]


def test_continuity_injected_into_later_sections(fake_client, make_orchestrator):
    asyncio.run(make_orchestrator().run())

    first = _user_prompt(fake_client.requests_for("section:1:generate")[0])
    second = _user_prompt(fake_client.requests_for("section:2:generate")[0])
    third = _user_prompt(fake_client.requests_for("section:3:generate")[0])

    assert "Previous dialogue" not in first
    assert "Answer for section:1." in second
    assert "Section 1 covered the basics" in second
    assert "topic 1" in second
    assert "topic 1" in third and "topic 2" in third
    assert "Answer for section:2." in third


def test_part_types_follow_position(fake_client, make_orchestrator):
    asyncio.run(make_orchestrator().run())

    assert "opening segment" in _user_prompt(fake_client.requests_for("section:1:generate")[0])
    assert "middle segment" in _user_prompt(fake_client.requests_for("section:2:generate")[0])
    assert "closing segment" in _user_prompt(fake_client.requests_for("section:3:generate")[0])


def test_buffer_commits_and_final_text(fake_client, make_orchestrator):
    buffer = ScriptBuffer()
    updates = []
    buffer.subscribe(updates.append)

    result = asyncio.run(make_orchestrator(buffer=buffer).run())

    assert [u.kind for u in updates] == ["reset", "section", "section", "section", "final"]
    assert [s.number for s in buffer.sections] == ["1", "2", "3"]
    assert buffer.final_text == result.text == buffer.assembled
    assert "Host line for section:1." in result.text
    assert result.text.index("section:1") < result.text.index("section:2") < result.text.index("section:3")


def test_cross_section_improvement_replaces_final_text(fake_client, make_orchestrator):
    fake_client.script("cross_section:verify", INVALID_MINOR, VALID)

    orchestrator = make_orchestrator()
    result = asyncio.run(orchestrator.run())

    assert "cross_section:improve improved" in result.text
    assert orchestrator.buffer.final_text == result.text
    assert orchestrator.buffer.assembled != result.text
    assert result.cross_section.chosen_index == 2
    improve = fake_client.requests_for("cross_section:improve")[0]
    assert "Repeats the intro" in _user_prompt(improve)


def test_summary_failure_does_not_stop_run(fake_client, make_orchestrator):
    fake_client.script("summary:", LLMError("summary down"))

    result = asyncio.run(make_orchestrator().run())

    assert result.status == STATUS_COMPLETED
    second = _user_prompt(fake_client.requests_for("section:2:generate")[0])
    assert "Conversation so far" not in second
    assert "Answer for section:1." in second


def test_progress_monotonic_and_complete(make_orchestrator, percents):
    asyncio.run(make_orchestrator().run())

    assert percents[0] == 0.0
    assert percents == sorted(percents)
    assert percents[-1] == 100.0


def test_cancellation_keeps_committed_sections(fake_client, make_orchestrator, notes):
    token = CancellationToken()

    def cancel_now(request):
        token.cancel()
        return "---\nHOST:\nNever committed."

    fake_client.script("section:2:generate", cancel_now)
    events = []
    orchestrator = make_orchestrator(should_cancel=token, on_event=events.append)

    result = asyncio.run(orchestrator.run())

    assert result.status == STATUS_CANCELLED
    assert result.sections_completed == 1
    assert result.total_sections == 3
    assert "Answer for section:1." in result.text
    assert "Never committed" not in result.text
    assert fake_client.callers("section:3") == []
    assert events[-1].event_type == "cancelled"
    assert ("info", "Script generation cancelled") in notes


def test_generation_error_propagates_with_partial_buffer(fake_client, make_orchestrator, notes):
    fake_client.script("section:3:generate", LLMError("exhausted"))
    orchestrator = make_orchestrator()

    with pytest.raises(LLMError):
        asyncio.run(orchestrator.run())

    assert [s.number for s in orchestrator.buffer.sections] == ["1", "2"]
    assert notes[-1][0] == "error"


def test_events_include_section_commits(make_orchestrator):
    events = []

    asyncio.run(make_orchestrator(on_event=events.append).run())

    committed = [e for e in events if e.event_type == "section_committed"]
    assert [e.index for e in committed] == [0, 1, 2]
    assert all(e.total == 3 for e in committed)
    assert events[-1].event_type == "pipeline_complete"


def test_empty_outline_rejected(fake_client, brief):
    orchestrator = ScriptPipelineOrchestrator(fake_client, brief)

    with pytest.raises(ValueError):
        asyncio.run(orchestrator.run("no sections at all"))
    assert fake_client.requests == []


def test_zero_attempt_budgets_rejected(fake_client, brief, outline_text):
    with pytest.raises(ValueError):
        ScriptPipelineOrchestrator(fake_client, brief, outline_text=outline_text, section_max_attempts=0)
    with pytest.raises(ValueError):
        ScriptPipelineOrchestrator(fake_client, brief, outline_text=outline_text, cross_section_max_attempts=0)
    assert fake_client.requests == []


def test_zero_outline_budget_rejected(fake_client, brief):
    with pytest.raises(ValueError):
        asyncio.run(generate_outline(fake_client, brief, max_attempts=0))
    assert fake_client.requests == []


def test_buffer_rejects_commit_after_finalize():
    buffer = ScriptBuffer()
    buffer.commit("1", "One", "text")
    buffer.finalize("final")

    with pytest.raises(RuntimeError):
        buffer.commit("2", "Two", "more")


def test_buffer_observer_failure_is_isolated():
    buffer = ScriptBuffer()
    seen = []

    def broken(update):
        raise RuntimeError("observer bug")

    buffer.subscribe(broken)
    unsubscribe = buffer.subscribe(seen.append)
    buffer.commit("1", "One", "text")
    unsubscribe()
    buffer.commit("2", "Two", "more")

    assert [u.section.number for u in seen] == ["1"]
    assert buffer.assembled == "text\n\nmore"
