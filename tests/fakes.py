"""Scripted stand-ins for the LLM adapter used by the agent tests."""

import json

from agent.llm import ChatSession, LLMAdapter, LLMResponse, ToolCall
from agent.prompts import STRATEGIST_SCHEMA

CLEAR = json.dumps({
    "is_clear": True,
    "questions_for_user": [],
    "recommendations_for_user": [],
    "instructions_for_planner_ai": "Answer the question using the sales dataset.",
})

APPROVE = json.dumps({"decision": "approve", "feedback": "Looks good."})


def tool_call(name: str, **args) -> LLMResponse:
    return LLMResponse(tool_calls=[ToolCall(name=name, args=args)])


def tool_calls(*calls: tuple) -> LLMResponse:
    """Several calls in one turn: ``tool_calls(("name", {...}), ...)``."""
    return LLMResponse(tool_calls=[ToolCall(name=n, args=a) for n, a in calls])


def text(value: str) -> LLMResponse:
    return LLMResponse(text=value)


def empty() -> LLMResponse:
    return LLMResponse()


class FakeChat(ChatSession):
    """Replays a shared script of responses and records what was sent.

    Script entries may be an LLMResponse, an Exception (raised), or a
    callable taking the sent message.  An exhausted script yields empty
    responses.
    """

    def __init__(self, script: list):
        self.script = script
        self.sent: list = []

    def send(self, message) -> LLMResponse:
        self.sent.append(message)
        if not self.script:
            return LLMResponse()
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(message)
        return item


class FakeAdapter(LLMAdapter):
    """Adapter whose planner chat, strategist and reviewer are scripted.

    Strategist and reviewer replies are raw text (or Exceptions); when a
    script runs out the strategist says "clear" and the reviewer approves.
    """

    def __init__(self, planner=None, strategist=None, reviewer=None):
        self.planner_script = list(planner or [])
        self.strategist_replies = list(strategist or [])
        self.reviewer_replies = list(reviewer or [])
        self.chats: list[FakeChat] = []
        self.strategist_prompts: list[str] = []
        self.reviewer_prompts: list[str] = []

    @property
    def chat(self) -> FakeChat:
        return self.chats[-1]

    def create_chat(self, model, system_prompt, tools=None, *, json_schema=None, temperature=None):
        chat = FakeChat(self.planner_script)
        self.chats.append(chat)
        return chat

    def generate(self, model, contents, *, system_prompt=None, temperature=None,
                 json_schema=None) -> LLMResponse:
        if json_schema is STRATEGIST_SCHEMA:
            self.strategist_prompts.append(contents)
            reply = self.strategist_replies.pop(0) if self.strategist_replies else CLEAR
        else:
            self.reviewer_prompts.append(contents)
            reply = self.reviewer_replies.pop(0) if self.reviewer_replies else APPROVE
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(text=reply)

    def make_tool_result_message(self, tool_name, result, *, tool_call_id=None):
        return {"function_response": tool_name, "result": result, "id": tool_call_id}

    def make_text_part(self, text):
        return {"text": text}
