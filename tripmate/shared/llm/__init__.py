"""LLM client utilities."""

from tripmate.shared.llm.client import (
    ChatModel,
    ModelReply,
    OpenAIChatModel,
    ToolCall,
    call_llm,
    call_llm_json,
    get_cached_client,
)

__all__ = [
    "ChatModel",
    "ModelReply",
    "OpenAIChatModel",
    "ToolCall",
    "call_llm",
    "call_llm_json",
    "get_cached_client",
]
