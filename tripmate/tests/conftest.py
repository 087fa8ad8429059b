"""
Shared test doubles.

ScriptedChatModel stands in for the OpenAI chat model: each complete()
call returns the next scripted reply and records what it was asked.
"""

import json

import pytest

from tripmate.shared.llm.client import ModelReply, ToolCall


class ScriptedChatModel:
    """ChatModel that replays a fixed list of replies."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, messages, tools=None, tool_choice=None, model=None):
        self.calls.append(
            {
                "messages": [dict(m) for m in messages],
                "tools": [t["function"]["name"] for t in tools or []],
                "tool_choice": tool_choice,
            }
        )
        if not self.replies:
            raise AssertionError("ScriptedChatModel ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return ModelReply(content=reply)
        return reply


def _tool_reply(*calls):
    """
    Build a ModelReply requesting tool calls.

    Each call is a (name, arguments) pair; ids are assigned in order.
    """
    return ModelReply(
        content=None,
        tool_calls=[
            ToolCall(id=f"call_{i}", name=name, arguments=json.dumps(arguments))
            for i, (name, arguments) in enumerate(calls)
        ],
    )


@pytest.fixture
def scripted_model():
    """Factory: scripted_model("reply", tool_reply(...), ...)."""
    return lambda *replies: ScriptedChatModel(replies)


@pytest.fixture
def tool_reply():
    return _tool_reply
