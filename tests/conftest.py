"""
Shared fixtures and fakes for the chat core tests.

The OpenAI client and the MCP session are replaced by small in-memory fakes
that speak just enough of their interfaces for the code under test.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from agent_conversation.config import Settings
from agent_conversation.connection import ConnectionHolder, ToolDescriptor


# ---------------------------------------------------------------------------
# Responses API stream events
# ---------------------------------------------------------------------------

def text_event(text):
    return SimpleNamespace(type="response.output_text.delta", delta=text)


def function_call_item(name, arguments="{}", call_id="call_0"):
    return SimpleNamespace(type="function_call", name=name, arguments=arguments, call_id=call_id)


def function_call_event(name, arguments="{}", call_id="call_0"):
    return SimpleNamespace(
        type="response.output_item.done",
        item=function_call_item(name, arguments, call_id),
    )


def completed_event(text="", output=None):
    return SimpleNamespace(
        type="response.completed",
        response=SimpleNamespace(output_text=text, output=output or []),
    )


def error_event(message):
    return SimpleNamespace(type="error", message=message)


async def _stream(events):
    for event in events:
        if isinstance(event, Exception):
            raise event
        yield event


class FakeResponses:
    """Stands in for ``AsyncOpenAI().responses``; one queued stream per create()."""

    def __init__(self, streams):
        self.streams = list(streams)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(dict(kwargs, input=list(kwargs.get("input", []))))
        events = self.streams.pop(0)
        if isinstance(events, Exception):
            raise events
        return _stream(events)


class FakeOpenAI:
    def __init__(self, *streams):
        self.responses = FakeResponses(streams)


class CollectingSink:
    """Event sink that records every fragment it receives."""

    def __init__(self):
        self.fragments = []

    async def emit(self, fragment):
        self.fragments.append(fragment)

    @property
    def kinds(self):
        return [fragment.kind.value for fragment in self.fragments]


# ---------------------------------------------------------------------------
# Tool server fakes
# ---------------------------------------------------------------------------

class FakeSession:
    def __init__(self):
        self.list_tools = AsyncMock(return_value=SimpleNamespace(tools=[]))
        self.call_tool = AsyncMock()


def make_connector(tools):
    """Connector that hands out fresh holders and remembers them."""
    created = []

    async def connector():
        # Let concurrent callers queue up on the manager's lock
        await asyncio.sleep(0.01)
        holder = ConnectionHolder(FakeSession(), list(tools))
        created.append(holder)
        return holder

    connector.created = created
    return connector


@pytest.fixture
def settings():
    return Settings(api_key="sk-test", liveness_timeout=0.05, catalog_timeout=0.05, connect_timeout=0.05)


@pytest.fixture
def search_tool():
    return ToolDescriptor(
        name="search",
        description="Search the web",
        input_schema={
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
    )


@pytest.fixture
def sink():
    return CollectingSink()
