"""Tests for user-facing messages and prompt builders."""

import pytest

from agent import messages, prompts, turn_limits
from agent.tools import get_tool_schemas, missing_params


@pytest.mark.parametrize(
    "error, expected",
    [
        ('Dataset "sales_2023" not found.', messages._ERROR_PHRASES[0][1]),
        ('Column "colour" does not exist in dataset "sales".', messages._ERROR_PHRASES[1][1]),
        ('Invalid expression format for: "a +".', messages._ERROR_PHRASES[4][1]),
        ("Unsupported aggregation function: median.", messages._ERROR_PHRASES[5][1]),
        ("Time series forecasting requires at least two data points.", messages._ERROR_PHRASES[6][1]),
        ("Something odd happened", messages.GENERIC_ERROR),
    ],
)
def test_translate_error(error, expected):
    assert messages.translate_error(error) == expected


def test_repeated_error_message():
    text = messages.repeated_error_message('Dataset "x" not found.')
    assert text.startswith("The data needed for the analysis could not be found.")
    assert text.endswith(messages.REPEATED_ERRORS_SUFFIX)


def test_clarification_question_order():
    """Recommendations come first, then questions, then the marker."""
    text = prompts.build_clarification_question(["Which year?"], ["Use 2024."])
    assert text.index("Use 2024.") < text.index("Which year?")
    assert text.endswith(prompts.USER_INPUT_REQUIRED)


def test_revision_instruction_quotes_feedback():
    assert 'Review Feedback: "Add a chart."' in prompts.build_revision_instruction("Add a chart.")


def test_format_dataset_schemas():
    assert prompts.format_dataset_schemas({}) == "(no datasets loaded)"
    assert prompts.format_dataset_schemas({"a": ["x", "y"]}) == "- a: [x, y]"


def test_every_tool_schema_has_optional_commentary():
    for schema in get_tool_schemas():
        params = schema["parameters"]
        assert "commentary" in params["properties"]
        assert "commentary" not in params.get("required", [])


def test_missing_params_accepts_aliases():
    args = {"dataset_name": "s", "category_column": "k", "value_column": "v", "title": "t"}
    assert missing_params("render_pie_chart", args) == []
    assert missing_params("render_pie_chart", {"dataset_name": "s"}) == ["name_column", "value_column", "title"]


def test_turn_limit_overrides(monkeypatch):
    assert turn_limits.get_limit("planner.max_turns") == 200
    monkeypatch.setattr(turn_limits, "_overrides", {"planner.max_turns": "5"})
    assert turn_limits.get_limit("planner.max_turns") == 5
    with pytest.raises(KeyError):
        turn_limits.get_limit("planner.max_turn")
