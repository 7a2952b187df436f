"""Agent layer: planner loop, advisory models and tool dispatch.

Lazy imports keep ``import agent.event_bus`` (and friends) cheap and free of
the google-genai import chain pulled in by agent.core.
"""


def __getattr__(name: str):
    if name in ("AnalystAgent", "create_agent", "RunOutcome", "Terminal"):
        from . import core
        return getattr(core, name)
    if name == "ToolExecutor":
        from .tool_executor import ToolExecutor
        return ToolExecutor
    if name in ("TOOLS", "get_tool_schemas"):
        from .tools import TOOLS, get_tool_schemas
        return TOOLS if name == "TOOLS" else get_tool_schemas
    if name == "get_system_prompt":
        from .prompts import get_system_prompt
        return get_system_prompt
    raise AttributeError(f"module 'agent' has no attribute {name!r}")
