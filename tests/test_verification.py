"""Decoding reviewer output into VerificationResult."""
import json

import pytest

from podcastinator.services.verification import (
    OUTLINE_POSITIVE_KEYWORDS,
    ValidationParseError,
    api_error_result,
    extract_json_object,
    format_feedback,
    parse_verification,
    unparsable_result,
)


def test_parses_embedded_json():
    text = 'Here is my review:\n{"isValid": false, "issues": [{"severity": "major", "description": "Too short"}], "feedback": "Expand it"}\nThanks'

    result = parse_verification(text)

    assert result.is_valid is False
    assert result.issues[0].severity == "major"
    assert result.issues[0].description == "Too short"
    assert result.feedback == "Expand it"
    assert result.summary == "Expand it"


def test_parses_fenced_json_with_braces_in_strings():
    text = '```json\n{"isValid": true, "issues": [], "summary": "Uses {placeholders} fine"}\n```'

    result = parse_verification(text)

    assert result.is_valid is True
    assert result.issues == []
    assert result.feedback == "Uses {placeholders} fine"


def test_missing_issues_key_stays_none():
    result = parse_verification('{"isValid": true}')
    assert result.issues is None


def test_actions_string_coerced_to_list():
    result = parse_verification('{"isValid": false, "issues": [{"severity": "minor", "actions": "Trim intro"}]}')
    assert result.issues[0].actions == ["Trim intro"]


def test_no_json_uses_keyword_scan():
    positive = parse_verification("The section is coherent and flows well.")
    negative = parse_verification("This needs a lot of work.")

    assert positive.is_valid is True
    assert negative.is_valid is False
    assert negative.feedback.endswith("...")


def test_outline_keywords():
    assert parse_verification("Timing looks accurate.", OUTLINE_POSITIVE_KEYWORDS).is_valid is True
    assert parse_verification("Timing looks accurate.").is_valid is False


def test_malformed_json_raises():
    with pytest.raises(ValidationParseError):
        parse_verification('{"isValid": true, "issues": [,]}')


def test_schema_violation_raises():
    with pytest.raises(ValidationParseError):
        parse_verification('{"isValid": true, "issues": "not a list"}')


def test_missing_valid_flag_means_invalid():
    result = parse_verification('{"issues": [{"severity": "critical", "description": "Wrong year"}]}')

    assert result.is_valid is False
    assert result.issues[0].severity == "critical"


def test_truncated_json_raises_instead_of_keyword_scan():
    with pytest.raises(ValidationParseError):
        parse_verification('{"isValid": false, "issues": [')
    with pytest.raises(ValidationParseError):
        parse_verification('Looks valid overall: {"isValid": tru')


def test_extract_json_object():
    assert extract_json_object("none here") is None
    assert extract_json_object('a {"x": {"y": 1}} b {"z": 2}') == '{"x": {"y": 1}}'
    assert extract_json_object('{"broken": "}" ') is None


def test_fail_open_results_are_valid_and_flagged():
    for result in (api_error_result(), unparsable_result()):
        assert result.is_valid is True
        assert result.fallback is True
        assert result.issues is None


def test_format_feedback_is_json():
    result = parse_verification('{"isValid": false, "issues": [{"severity": "critical", "description": "Wrong date"}]}')

    payload = json.loads(format_feedback(result))

    assert payload["isValid"] is False
    assert payload["issues"][0]["severity"] == "critical"
