"""Tests for the planner loop in AnalystAgent."""

import json

import pytest

from agent import turn_limits
from agent.core import Terminal, is_incomplete_answer
from agent.event_bus import (
    AGENT_RESPONSE,
    ARTIFACT_CREATED,
    CLARIFICATION,
    PLANNER_INSTRUCTION,
    USER_MESSAGE,
)
from agent.messages import (
    INCOMPLETE_ANSWER,
    NO_RESPONSE,
    REPEATED_ERRORS_SUFFIX,
    SERVICE_UNAVAILABLE,
    STEP_LIMIT,
)
from agent.plan import CONDUCT_FINAL_REVIEW, REVISE_PLAN_BASED_ON_FEEDBACK, REVISE_PLAN_DUE_TO_ERROR, StepStatus
from agent.prompts import EMPTY_RESPONSE_NUDGE, INCOMPLETE_ANSWER_NUDGE, USER_INPUT_REQUIRED

from tests.fakes import empty, text, tool_call, tool_calls

FINAL = "North and South each have two orders, East has one."
UNCLEAR = json.dumps({
    "is_clear": False,
    "questions_for_user": ["Which year should be analyzed?"],
    "recommendations_for_user": ["Use the full history."],
    "instructions_for_planner_ai": "",
})


def bad_call():
    return tool_call("get_dataset_schema", dataset_name="sales_2023")


def good_call():
    return tool_call("get_dataset_schema", dataset_name="sales")


class TestIncompleteAnswer:
    @pytest.mark.parametrize("reply", ["OK", "", "Done.", "Sure, I will start the analysis right away.",
                                       "Let me look into the sales data for you now."])
    def test_incomplete(self, reply):
        assert is_incomplete_answer(reply)

    @pytest.mark.parametrize("reply", [FINAL, "Sure.\nRevenue was 42 in North and 10 in East overall."])
    def test_complete(self, reply):
        assert not is_incomplete_answer(reply)


class TestHappyPath:
    def test_tool_then_answer(self, make_agent):
        agent, adapter = make_agent(planner=[
            tool_call("get_dataset_schema", dataset_name="sales", commentary="Inspect the sales table"),
            text(FINAL),
        ])
        outcome = agent.run("How many orders per region?")

        assert outcome.terminal == Terminal.DONE
        assert outcome.status == "completed"
        assert outcome.message == FINAL
        assert [s.description for s in outcome.plan][0] == "Inspect the sales table"
        assert [s.tool_name for s in outcome.plan] == ["get_dataset_schema", CONDUCT_FINAL_REVIEW]
        assert all(s.status == StepStatus.COMPLETED for s in outcome.plan)
        assert outcome.plan[0].tool_args == {"dataset_name": "sales"}

        sent = adapter.chat.sent
        assert 'The user\'s request is: "How many orders per region?"' in sent[0]
        assert sent[1][0]["result"]["status"] == "success"
        assert sent[1][0]["result"]["dataset_name"] == "sales"

    def test_default_step_description(self, make_agent):
        agent, _ = make_agent(planner=[good_call(), text(FINAL)])
        outcome = agent.run("Describe sales")
        assert outcome.plan[0].description == "Executing tool: get_dataset_schema"

    def test_events_bracket_the_run(self, make_agent):
        agent, _ = make_agent(planner=[text(FINAL)])
        agent.run("Describe sales")
        events = agent.event_bus.get_events()
        assert events[0].type == USER_MESSAGE
        assert events[-1].type == AGENT_RESPONSE
        assert agent.event_bus.get_events(types={PLANNER_INSTRUCTION})

    def test_one_planner_call_per_turn(self, make_agent):
        agent, adapter = make_agent(planner=[good_call(), text(FINAL)])
        agent.run("Describe sales")
        assert len(adapter.chat.sent) == 2


class TestClarification:
    def test_unclear_request_asks_the_user(self, make_agent):
        agent, adapter = make_agent(strategist=[UNCLEAR], planner=[text(FINAL)])
        outcome = agent.run("Show sales")

        assert outcome.status == "clarification_needed"
        assert outcome.terminal == Terminal.CLARIFICATION_NEEDED
        assert outcome.message.index("Use the full history.") < outcome.message.index("Which year")
        assert outcome.message.endswith(USER_INPUT_REQUIRED)
        assert adapter.chat.sent == []
        assert agent.event_bus.get_events(types={CLARIFICATION})

    def test_reply_continues_the_clarification(self, make_agent):
        agent, adapter = make_agent(strategist=[UNCLEAR], planner=[text(FINAL)])
        agent.run("Show sales")
        outcome = agent.run("2024 only")

        assert outcome.terminal == Terminal.DONE
        second_prompt = adapter.strategist_prompts[1]
        assert "Show sales" in second_prompt
        assert "AI: Here are some suggestions" in second_prompt
        assert "User: 2024 only" in second_prompt
        assert 'The user\'s request is: "Show sales"' in adapter.chat.sent[0]
        assert agent.clarification is None


class TestSelfCorrection:
    def test_error_sends_correction_message(self, make_agent):
        agent, adapter = make_agent(planner=[bad_call(), good_call(), text(FINAL)])
        outcome = agent.run("Describe sales")

        assert outcome.terminal == Terminal.DONE
        correction = adapter.chat.sent[1]
        assert correction[0]["result"] == {"status": "error", "message": 'Dataset "sales_2023" not found.'}
        assert "failed with the error" in correction[-1]["text"]
        assert "Describe sales" in correction[-1]["text"]

        names = [s.tool_name for s in outcome.plan]
        assert names[:3] == ["get_dataset_schema", REVISE_PLAN_DUE_TO_ERROR, "get_dataset_schema"]
        assert outcome.plan[0].status == StepStatus.ERROR
        assert outcome.plan[1].status == StepStatus.COMPLETED

    def test_consecutive_errors_stop_the_run(self, make_agent):
        agent, _ = make_agent(planner=[bad_call(), bad_call(), text(FINAL)])
        outcome = agent.run("Describe sales")

        assert outcome.terminal == Terminal.ERROR
        assert outcome.message.startswith("The data needed for the analysis could not be found.")
        assert outcome.message.endswith(REPEATED_ERRORS_SUFFIX)
        assert [s.status for s in outcome.plan if s.tool_name == "get_dataset_schema"] == [
            StepStatus.ERROR, StepStatus.ERROR,
        ]

    def test_success_resets_the_error_count(self, make_agent):
        agent, _ = make_agent(planner=[bad_call(), good_call(), bad_call(), good_call(), text(FINAL)])
        outcome = agent.run("Describe sales")
        assert outcome.terminal == Terminal.DONE

    def test_remaining_calls_are_skipped(self, make_agent):
        agent, adapter = make_agent(planner=[
            tool_calls(
                ("get_dataset_schema", {"dataset_name": "sales_2023"}),
                ("render_table", {"dataset_name": "sales", "title": "All orders"}),
            ),
            text(FINAL),
        ])
        outcome = agent.run("Describe sales")

        parts = adapter.chat.sent[1]
        assert [p.get("result", {}).get("status") for p in parts[:2]] == ["error", "skipped"]
        assert "text" in parts[2]
        assert outcome.plan[1].tool_name == "render_table"
        assert outcome.plan[1].status == StepStatus.WARNING
        assert agent.artifacts == []


class TestTerminalConditions:
    def test_model_failure(self, make_agent):
        agent, _ = make_agent(planner=[RuntimeError("503 Service Unavailable")])
        outcome = agent.run("Describe sales")
        assert outcome.terminal == Terminal.ERROR
        assert outcome.message == SERVICE_UNAVAILABLE

    def test_empty_responses(self, make_agent):
        agent, adapter = make_agent(planner=[empty(), empty()])
        outcome = agent.run("Describe sales")
        assert outcome.terminal == Terminal.NO_RESPONSE
        assert outcome.message == NO_RESPONSE
        assert adapter.chat.sent[1] == EMPTY_RESPONSE_NUDGE

    def test_single_empty_response_is_nudged(self, make_agent):
        agent, _ = make_agent(planner=[empty(), text(FINAL)])
        assert agent.run("Describe sales").terminal == Terminal.DONE

    def test_turn_limit(self, make_agent, monkeypatch):
        monkeypatch.setattr(turn_limits, "_overrides", {"planner.max_turns": 4})
        agent, adapter = make_agent(planner=[good_call() for _ in range(10)])
        outcome = agent.run("Describe sales")

        assert outcome.terminal == Terminal.TURN_LIMIT
        assert outcome.message == STEP_LIMIT
        assert len(adapter.chat.sent) == 4
        assert len(outcome.plan) == 4

    def test_incomplete_answers(self, make_agent):
        agent, adapter = make_agent(planner=[text("OK") for _ in range(4)])
        outcome = agent.run("Describe sales")
        assert outcome.terminal == Terminal.INCOMPLETE
        assert outcome.message == INCOMPLETE_ANSWER
        assert adapter.chat.sent[1] == INCOMPLETE_ANSWER_NUDGE
        assert len(adapter.chat.sent) == 4

    def test_planner_question_waits_for_the_user(self, make_agent):
        question = f"Which currency pair should I simulate? {USER_INPUT_REQUIRED}"
        agent, adapter = make_agent(planner=[good_call(), text(question), text(FINAL)])

        outcome = agent.run("Run a forex scenario")
        assert outcome.terminal == Terminal.AWAITING_USER
        assert outcome.message == question
        assert adapter.reviewer_prompts == []

        outcome = agent.run("USD/JPY at 160")
        assert outcome.terminal == Terminal.DONE
        assert adapter.chat.sent[2] == "USD/JPY at 160"
        assert len(adapter.strategist_prompts) == 1

    def test_follow_up_reaches_the_reviewer(self, make_agent):
        """The reviewer sees both the first request and the follow-up."""
        agent, adapter = make_agent(planner=[good_call(), text(FINAL), text(FINAL)])
        agent.run("Describe sales")
        agent.run("Now count orders by product")
        assert len(adapter.reviewer_prompts) == 2
        assert "Describe sales" in adapter.reviewer_prompts[1]
        assert "Now count orders by product" in adapter.reviewer_prompts[1]


class TestReview:
    def test_revision_adds_steps(self, make_agent):
        agent, adapter = make_agent(
            planner=[
                text("Draft answer without any table of the orders."),
                tool_call("render_table", dataset_name="sales", title="All orders"),
                text("Draft answer, now with a table of all orders."),
            ],
            reviewer=[
                json.dumps({"decision": "revise", "feedback": "Include a table of all orders."}),
                json.dumps({"decision": "approve", "feedback": "Good.",
                            "revised_text": "Polished final answer with the orders table."}),
            ],
        )
        outcome = agent.run("List all orders")

        assert outcome.terminal == Terminal.DONE
        assert outcome.message == "Polished final answer with the orders table."
        assert 'Review Feedback: "Include a table of all orders."' in adapter.chat.sent[1]
        assert [(s.tool_name, s.status) for s in outcome.plan] == [
            (CONDUCT_FINAL_REVIEW, StepStatus.WARNING),
            (REVISE_PLAN_BASED_ON_FEEDBACK, StepStatus.COMPLETED),
            ("render_table", StepStatus.COMPLETED),
            (CONDUCT_FINAL_REVIEW, StepStatus.COMPLETED),
        ]
        assert all(a.reviewed for a in agent.artifacts)

    def test_reviewer_revises_report_summary(self, make_agent):
        agent, _ = make_agent(
            planner=[
                tool_call("render_bar_chart", dataset_name="sales", category_column="region",
                          value_column="price", title="Prices"),
                tool_call("generate_report", title="Q1", summary="draft",
                          artifact_titles=["Prices"]),
                text(FINAL),
            ],
            reviewer=[json.dumps({
                "decision": "approve", "feedback": "Fine.",
                "revised_artifacts": [{"title": "Q1", "summary": "Final summary"}],
            })],
        )
        agent.run("Report on prices")

        assert agent.executor.registry.find("Q1").summary == "Final summary"
        revised = [e for e in agent.event_bus.get_events(types={ARTIFACT_CREATED})
                   if e.data.get("revised")]
        assert len(revised) == 1

    def test_reviewer_failure_approves(self, make_agent):
        agent, _ = make_agent(planner=[text(FINAL)], reviewer=[RuntimeError("timeout")])
        outcome = agent.run("Describe sales")
        assert outcome.terminal == Terminal.DONE
        assert outcome.message == FINAL

    def test_new_artifacts_policy_skips_review_without_artifacts(self, make_agent):
        agent, adapter = make_agent(planner=[good_call(), text(FINAL)], review_policy="new_artifacts")
        outcome = agent.run("Describe sales")
        assert outcome.terminal == Terminal.DONE
        assert adapter.reviewer_prompts == []
        assert CONDUCT_FINAL_REVIEW not in [s.tool_name for s in outcome.plan]


def test_reset_starts_over_with_the_same_data(make_agent):
    agent, adapter = make_agent(planner=[
        tool_call("render_table", dataset_name="sales", title="All orders"),
        text(FINAL),
    ])
    agent.run("List all orders")
    agent.reset()

    assert agent.plan == []
    assert agent.artifacts == []
    assert len(agent.event_bus) == 0
    assert len(adapter.chats) == 2
    assert "sales" in agent.executor.dataset_schemas()
