"""
OpenAI client with retry logic.

Provides a cached async client instance, wrappers for plain and JSON
completions, and the tool-calling chat model used by specialists. All
network calls retry automatically using tenacity.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

from openai import AsyncOpenAI
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from dotenv import load_dotenv

from tripmate.shared.parsing import parse_json_object

load_dotenv()

# Module-level cache for OpenAI client
_client: Optional[AsyncOpenAI] = None

ToolChoice = Union[str, Dict[str, Any]]


def get_cached_client() -> AsyncOpenAI:
    """
    Returns a cached instance of the async OpenAI client.

    Uses OPENAI_API_KEY environment variable for authentication.
    The client is created once and reused for all subsequent calls.
    """
    global _client
    if _client is None:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is not set. "
                "Please set it to your OpenAI API key."
            )
        _client = AsyncOpenAI(api_key=api_key)
    return _client


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((Exception,)),
    reraise=True,
)
async def call_llm(
    messages: List[Dict[str, Any]],
    model: str = "gpt-4.1-mini",
    client: Optional[AsyncOpenAI] = None,
    json_mode: bool = False,
) -> str:
    """
    Call the OpenAI Chat Completion API with automatic retries.

    Args:
        messages: List of message dicts with 'role' and 'content' keys
        model: Model identifier to use (default: gpt-4.1-mini)
        client: Optional client instance. If not provided, uses cached client.
        json_mode: Ask the API for a JSON object response

    Returns:
        The assistant's response content as a string.

    Raises:
        Exception: If all retry attempts fail.
    """
    if client is None:
        client = get_cached_client()

    kwargs: Dict[str, Any] = {"model": model, "messages": messages}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = await client.chat.completions.create(**kwargs)

    return (response.choices[0].message.content or "").strip()


async def call_llm_json(
    system_prompt: str,
    user_prompt: str,
    model: str = "gpt-4.1-mini",
    client: Optional[AsyncOpenAI] = None,
) -> Dict[str, Any]:
    """
    Ask for a single JSON object and parse it.

    Raises:
        ParseError: If the response does not contain a JSON object
    """
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
    raw = await call_llm(messages, model=model, client=client, json_mode=True)
    return parse_json_object(raw)


# ============================================================================
# Tool-calling chat model
# ============================================================================


@dataclass
class ToolCall:
    """A single function call requested by the model."""

    id: str
    name: str
    arguments: str


@dataclass
class ModelReply:
    """Assistant turn returned by a chat model."""

    content: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)

    def as_message(self) -> Dict[str, Any]:
        """Assistant message to append to the running conversation."""
        message: Dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class ChatModel(Protocol):
    """Anything that can answer a chat turn, optionally with tool calls."""

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[ToolChoice] = None,
        model: Optional[str] = None,
    ) -> ModelReply:
        ...


class OpenAIChatModel:
    """ChatModel backed by the OpenAI Chat Completions API."""

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self._client = client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((Exception,)),
        reraise=True,
    )
    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[ToolChoice] = None,
        model: Optional[str] = None,
    ) -> ModelReply:
        client = self._client or get_cached_client()

        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
        }
        if tools:
            kwargs["tools"] = tools
            if tool_choice is not None:
                kwargs["tool_choice"] = tool_choice

        response = await client.chat.completions.create(**kwargs)
        message = response.choices[0].message

        calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in (message.tool_calls or [])
        ]
        return ModelReply(content=message.content, tool_calls=calls)
