"""Tests for the streaming agent and its tool loop."""

import json

import pytest
from openai import OpenAIError

from agent_conversation.agent import (
    Agent,
    FinalResponse,
    StreamedText,
    ToolCallItem,
    ToolResultItem,
)
from agent_conversation.errors import ModelStreamError
from agent_conversation.plugins.time_plugin import TimePlugin
from agent_conversation.tool_registry import ToolRegistry

from conftest import (
    FakeOpenAI,
    completed_event,
    error_event,
    function_call_event,
    function_call_item,
    text_event,
)


def make_agent(client, **kwargs):
    registry = ToolRegistry()
    registry.register_callable(TimePlugin().get_current_time)
    return Agent(client, registry, **kwargs)


async def collect(agent, message="hello"):
    return [item async for item in agent.stream_prompt(message)]


class TestStreamPrompt:
    async def test_text_then_final(self):
        client = FakeOpenAI([text_event("Hi"), text_event(" there"), completed_event("Hi there")])

        items = await collect(make_agent(client))

        assert items[:2] == [StreamedText("Hi"), StreamedText(" there")]
        assert isinstance(items[2], FinalResponse)
        assert items[2].text == "Hi there"

    async def test_request_arguments(self):
        client = FakeOpenAI([completed_event("ok")])
        agent = make_agent(client, model_name="gpt-4o-mini", preamble="Be brief.", max_tokens=256)

        await collect(agent, "what time is it?")

        args = client.responses.calls[0]
        assert args["model"] == "gpt-4o-mini"
        assert args["instructions"] == "Be brief."
        assert args["max_output_tokens"] == 256
        assert args["stream"] is True
        assert args["input"] == [{"role": "user", "content": "what time is it?"}]
        assert [tool["name"] for tool in args["tools"]] == ["get_current_time"]

    async def test_tool_call_loop(self):
        call = function_call_item("get_current_time", "{}", "call_1")
        client = FakeOpenAI(
            [function_call_event("get_current_time", "{}", "call_1"), completed_event("", [call])],
            [text_event("It is late."), completed_event("It is late.")],
        )

        items = await collect(make_agent(client))

        assert [type(item) for item in items] == [
            ToolCallItem,
            ToolResultItem,
            StreamedText,
            FinalResponse,
        ]
        assert "current_time" in json.loads(items[1].output)

        second_input = client.responses.calls[1]["input"]
        assert second_input[1] is call
        assert second_input[2]["type"] == "function_call_output"
        assert second_input[2]["call_id"] == "call_1"

    async def test_stream_exhausted_without_completion(self):
        client = FakeOpenAI([text_event("partial")])

        items = await collect(make_agent(client))

        assert items == [StreamedText("partial")]

    async def test_error_event_raises(self):
        client = FakeOpenAI([text_event("a"), error_event("rate limited")])

        with pytest.raises(ModelStreamError, match="rate limited"):
            await collect(make_agent(client))

    async def test_client_error_raises(self):
        client = FakeOpenAI(OpenAIError("connection reset"))

        with pytest.raises(ModelStreamError, match="connection reset"):
            await collect(make_agent(client))

    async def test_non_openai_error_mid_stream_raises(self):
        client = FakeOpenAI([text_event("a"), ConnectionResetError("connection reset by peer")])

        with pytest.raises(ModelStreamError, match="connection reset by peer") as excinfo:
            await collect(make_agent(client))

        assert isinstance(excinfo.value.__cause__, ConnectionResetError)

    async def test_tool_loop_limit(self):
        looping = [function_call_event("get_current_time"), completed_event("", [])]
        client = FakeOpenAI(looping, looping)

        with pytest.raises(ModelStreamError, match="exceeded 2 turns"):
            await collect(make_agent(client, max_turns=2))
