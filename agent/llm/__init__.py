"""LLM abstraction layer — provider-agnostic interface for LLM interactions.

Re-exports the public API so consumers can write:
    from agent.llm import LLMAdapter, GeminiAdapter, LLMResponse, ...
"""

from .base import (
    ChatSession,
    ExternalServiceError,
    FunctionSchema,
    LLMAdapter,
    LLMResponse,
    ToolCall,
)
from .gemini_adapter import GeminiAdapter
