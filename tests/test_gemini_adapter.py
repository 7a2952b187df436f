"""Tests for Gemini response parsing and request config (no network)."""

from types import SimpleNamespace

from agent.llm.gemini_adapter import _content_config, _parse_response
from agent.prompts import STRATEGIST_SCHEMA
from agent.tools import get_function_schemas


def part(text=None, function_call=None, thought=False):
    return SimpleNamespace(text=text, function_call=function_call, thought=thought)


def raw_response(*parts):
    content = SimpleNamespace(parts=list(parts))
    return SimpleNamespace(candidates=[SimpleNamespace(content=content)])


def test_parse_skips_thoughts_and_reads_calls():
    call = SimpleNamespace(name="default_api:filter_data", args={"dataset_name": "sales"}, id=None)
    response = _parse_response(raw_response(
        part(text="thinking...", thought=True),
        part(function_call=call),
        part(text="Filtering now."),
    ))
    assert response.text == "Filtering now."
    assert response.tool_calls[0].name == "filter_data"
    assert response.tool_calls[0].args == {"dataset_name": "sales"}


def test_parse_empty_response():
    response = _parse_response(SimpleNamespace(candidates=[]))
    assert response.is_empty


def test_content_config_for_json_output():
    config = _content_config("system", json_schema=STRATEGIST_SCHEMA)
    assert config.response_mime_type == "application/json"
    assert config.system_instruction == "system"


def test_content_config_declares_all_tools():
    config = _content_config("system", tools=get_function_schemas())
    declarations = config.tools[0].function_declarations
    assert len(declarations) == 18
    assert "commentary" in declarations[0].parameters.properties
