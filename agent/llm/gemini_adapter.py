"""Gemini adapter — wraps all google-genai SDK calls.

This is the **only** module in the project that imports ``google.genai``.
All other agent code talks to Gemini through the :class:`GeminiAdapter` and
:class:`GeminiChatSession` interfaces defined here.
"""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from .base import (
    ChatSession,
    FunctionSchema,
    LLMAdapter,
    LLMResponse,
    ToolCall,
)

logger = logging.getLogger("tabula")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _build_function_declarations(
    tools: list[FunctionSchema] | None,
) -> list[types.FunctionDeclaration] | None:
    """Convert our FunctionSchema list to Gemini FunctionDeclaration list."""
    if not tools:
        return None
    return [
        types.FunctionDeclaration(
            name=t.name,
            description=t.description,
            parameters=t.parameters,
        )
        for t in tools
    ]


def _parse_response(raw) -> LLMResponse:
    """Parse a raw Gemini response into a provider-agnostic LLMResponse."""
    text_parts: list[str] = []
    tool_calls: list[ToolCall] = []

    candidates = getattr(raw, "candidates", None) or []
    if candidates:
        content = candidates[0].content
        if content and content.parts:
            for part in content.parts:
                if getattr(part, "thought", False):
                    continue
                if hasattr(part, "function_call") and part.function_call and part.function_call.name:
                    tool_calls.append(ToolCall(
                        name=part.function_call.name.removeprefix("default_api:"),
                        args=dict(part.function_call.args) if part.function_call.args else {},
                        id=getattr(part.function_call, "id", None),
                    ))
                elif hasattr(part, "text") and part.text:
                    text_parts.append(part.text)

    return LLMResponse(
        text="\n".join(text_parts) if text_parts else "",
        tool_calls=tool_calls,
        raw=raw,
    )


def _content_config(
    system_prompt: str | None,
    tools: list[FunctionSchema] | None = None,
    json_schema: dict | None = None,
    temperature: float | None = None,
) -> types.GenerateContentConfig | None:
    config_kwargs: dict[str, Any] = {}
    if system_prompt is not None:
        config_kwargs["system_instruction"] = system_prompt
    if temperature is not None:
        config_kwargs["temperature"] = temperature
    fds = _build_function_declarations(tools)
    if fds:
        config_kwargs["tools"] = [types.Tool(function_declarations=fds)]
    # JSON schema enforcement
    if json_schema is not None:
        config_kwargs["response_mime_type"] = "application/json"
        config_kwargs["response_json_schema"] = json_schema
    return types.GenerateContentConfig(**config_kwargs) if config_kwargs else None


# ---------------------------------------------------------------------------
# GeminiChatSession
# ---------------------------------------------------------------------------

class GeminiChatSession(ChatSession):
    """Wraps a ``genai`` chat session."""

    def __init__(self, chat):
        self._chat = chat

    def send(self, message) -> LLMResponse:
        """Send a message (text or list of Parts) and parse the response."""
        raw = self._chat.send_message(message)
        return _parse_response(raw)


# ---------------------------------------------------------------------------
# GeminiAdapter
# ---------------------------------------------------------------------------

class GeminiAdapter(LLMAdapter):
    """Adapter that wraps all ``google-genai`` SDK calls."""

    def __init__(self, api_key: str, timeout_ms: int = 300_000):
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(
                timeout=timeout_ms,
                retry_options=types.HttpRetryOptions(),
            ),
        )

    # -- LLMAdapter interface --------------------------------------------------

    def create_chat(
        self,
        model: str,
        system_prompt: str,
        tools: list[FunctionSchema] | None = None,
        *,
        json_schema: dict | None = None,
        temperature: float | None = None,
    ) -> ChatSession:
        config = _content_config(
            system_prompt, tools=tools, json_schema=json_schema, temperature=temperature,
        )
        chat = self._client.chats.create(model=model, config=config)
        return GeminiChatSession(chat)

    def generate(
        self,
        model: str,
        contents: str | list,
        *,
        system_prompt: str | None = None,
        temperature: float | None = None,
        json_schema: dict | None = None,
    ) -> LLMResponse:
        config = _content_config(
            system_prompt,
            json_schema=json_schema,
            temperature=temperature,
        )
        raw = self._client.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )
        return _parse_response(raw)

    def make_tool_result_message(
        self, tool_name: str, result: dict, *, tool_call_id: str | None = None
    ) -> Any:
        # Gemini matches function responses by name and ignores tool_call_id.
        return types.Part.from_function_response(
            name=tool_name,
            response={"result": result},
        )

    def make_text_part(self, text: str) -> Any:
        return types.Part.from_text(text=text)

