"""Tests for tool dispatch through the ToolExecutor."""

import pytest

from agent.event_bus import ARTIFACT_CREATED, TOOL_CALL, TOOL_ERROR, TOOL_RESULT
from agent.llm import ToolCall
from agent.tool_handlers import TOOL_REGISTRY
from agent.tools import TOOLS
from data_ops.errors import NotFoundError, ValidationError
from rendering.artifacts import ReportArtifact


def call(name, **args):
    return ToolCall(name=name, args=args)


def test_every_schema_has_a_handler():
    assert {t["name"] for t in TOOLS} == set(TOOL_REGISTRY)


def test_success_emits_call_and_result(executor, bus):
    outcome = executor.execute(call("get_dataset_schema", dataset_name="sales"))
    assert outcome.result["rows"] == 5
    types = [e.type for e in bus.get_events()]
    assert types == [TOOL_CALL, TOOL_RESULT]
    assert bus.get_events(types={TOOL_RESULT})[0].data["result"]["dataset_name"] == "sales"


def test_commentary_is_not_passed_to_the_handler(executor, bus):
    executor.execute(call("get_dataset_schema", dataset_name="sales", commentary="Look at the data"))
    assert bus.get_events(types={TOOL_CALL})[0].data["tool_args"] == {"dataset_name": "sales"}


def test_unknown_tool(executor, bus):
    with pytest.raises(NotFoundError, match='Tool "drop_table" not found.'):
        executor.execute(call("drop_table", dataset_name="sales"))
    error = bus.get_events(types={TOOL_ERROR})[0]
    assert error.data["error_type"] == "NotFoundError"


def test_missing_required_parameter(executor):
    with pytest.raises(ValidationError, match="Missing required parameter\\(s\\): column, operator"):
        executor.execute(call("filter_data", dataset_name="sales", value=1))


def test_handler_errors_propagate(executor, bus):
    with pytest.raises(NotFoundError, match='Dataset "nope" not found.'):
        executor.execute(call("get_dataset_schema", dataset_name="nope"))
    assert len(bus.get_events(types={TOOL_ERROR})) == 1


def test_transformation_creates_dataset(executor):
    outcome = executor.execute(call(
        "aggregate_data", dataset_name="sales", group_by_columns=["region"],
        aggregation_column="qty", aggregation_function="sum",
    ))
    assert outcome.dataset.name == "step_1_result"
    assert "step_1_result" in executor.store


def test_artifacts_are_registered_with_unique_titles(executor, bus):
    args = dict(dataset_name="sales", category_column="region", value_column="price", title="Revenue")
    first = executor.execute(call("render_bar_chart", **args))
    second = executor.execute(call("render_bar_chart", **args))
    assert first.artifact.title == "[bar_chart] Revenue"
    assert second.artifact.title == "[bar_chart] Revenue (2)"
    created = bus.get_events(types={ARTIFACT_CREATED})
    assert [e.data["artifact"].title for e in created] == [first.artifact.title, second.artifact.title]


def test_renamed_title_is_reported_back(executor):
    """The model is told the title the registry actually stored."""
    args = dict(dataset_name="sales", category_column="region", value_column="price", title="Revenue")
    executor.execute(call("render_bar_chart", **args))
    second = executor.execute(call("render_bar_chart", **args))
    assert second.result["title"] == "[bar_chart] Revenue (2)"
    assert second.result["message"] == 'Bar chart "[bar_chart] Revenue (2)" created.'

    report = executor.execute(call(
        "generate_report", title="Q1", summary="See charts.",
        artifact_titles=["[bar_chart] Revenue (2)"],
    ))
    assert report.result["included_artifacts"] == ["[bar_chart] Revenue (2)"]
    assert "missing_artifacts" not in report.result


def test_pie_chart_accepts_category_column(executor):
    outcome = executor.execute(call(
        "render_pie_chart", dataset_name="sales", category_column="region",
        value_column="price", title="Mix",
    ))
    assert outcome.artifact.category_key == "region"


def test_verify_requires_an_object(executor):
    with pytest.raises(ValidationError, match="must be an object"):
        executor.execute(call(
            "verify_visualization_data", dataset_name="sales",
            visualization_type="bar_chart", columns="region",
        ))


def test_forex_uses_the_executor_rng(executor):
    outcome = executor.execute(call(
        "calculate_correlated_forex_scenario", base_currency_pair="USD/JPY", scenario_rate="155"
    ))
    assert outcome.result["rows"] == 30


def test_report_and_revision(executor):
    executor.execute(call(
        "render_bar_chart", dataset_name="sales", category_column="region",
        value_column="price", title="Sales",
    ))
    report = executor.execute(call(
        "generate_report", title="Q1", summary="Draft", artifact_titles=["Sales"],
    )).artifact
    assert isinstance(report, ReportArtifact)

    updated = executor.update_artifacts([
        {"title": "Q1", "summary": "Final"},
        {"title": "[bar_chart] Sales", "summary": "ignored, not a report"},
    ])
    assert updated == ["Q1"]
    assert executor.registry.find("Q1").summary == "Final"
    assert len(executor.artifacts) == 2


def test_reset_keeps_base_data(executor):
    executor.execute(call("filter_data", dataset_name="sales", column="price", operator=">", value=1))
    executor.execute(call("render_table", dataset_name="sales", title="All"))
    executor.reset()
    assert executor.artifacts == []
    assert "step_1_result" not in executor.store
    assert executor.dataset_schemas()["regions"] == ["region", "manager"]
