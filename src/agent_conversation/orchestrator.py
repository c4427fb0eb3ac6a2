"""Drives one user message through the model and forwards its output."""

import logging
import uuid
from contextlib import aclosing
from typing import Callable, List, Optional

from openai import AsyncOpenAI

from .agent import (
    Agent,
    FinalResponse,
    StreamedText,
    ToolCallItem,
    ToolResultItem,
    TurnLoggerAdapter,
)
from .config import Settings
from .connection import ConnectionManager
from .errors import ChatTurnError, ConfigurationError, ModelStreamError, ToolServerError
from .fragments import EventSink, StreamFragment
from .plugins.time_plugin import TimePlugin
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

MISSING_API_KEY = "OPENAI_API_KEY environment variable not set"


class ChatOrchestrator:
    """Runs chat turns against the model, sharing one tool server connection."""

    def __init__(
        self,
        connections: ConnectionManager,
        settings: Optional[Settings] = None,
        client_factory: Callable = AsyncOpenAI,
        plugins: Optional[List] = None,
    ):
        self.connections = connections
        self.settings = settings or connections.settings
        self.client_factory = client_factory
        self.plugins = plugins if plugins is not None else [TimePlugin()]

    async def _emit(self, sink: EventSink, fragment: StreamFragment) -> None:
        try:
            await sink.emit(fragment)
        except Exception as e:
            logger.warning(f"Failed to emit {fragment.kind.value} fragment: {e}")

    async def build_agent(self, turn_logger: logging.LoggerAdapter) -> Agent:
        """Create the agent for one turn: built-in plugin tools plus whatever the server offers."""
        registry = ToolRegistry()
        for plugin in self.plugins:
            if hasattr(plugin, "hook_provide_tools"):
                for method in plugin.hook_provide_tools():
                    registry.register_callable(method)

        try:
            tools, client = await self.connections.acquire_tools_and_client()
        except ToolServerError as e:
            turn_logger.error(f"Failed to connect to tool server: {e}")
            turn_logger.error("Agent will run with built-in tools only")
        else:
            for tool in tools:
                registry.register_remote(tool, client)

        return Agent(
            self.client_factory(api_key=self.settings.api_key),
            registry,
            model_name=self.settings.model,
            preamble=self.settings.preamble,
            max_tokens=self.settings.max_tokens,
            max_turns=self.settings.max_turns,
            turn_logger=turn_logger,
        )

    async def handle_chat_turn(self, message: str, sink: EventSink) -> None:
        """Stream the answer to ``message`` into ``sink``.

        Raises
        ------
        ConfigurationError
            If no model API key is configured. Nothing is sent over the network.
        ChatTurnError
            If the model stream fails. Text already emitted stays valid.
        """
        if not self.settings.api_key:
            logger.error(MISSING_API_KEY)
            await self._emit(sink, StreamFragment.error(MISSING_API_KEY))
            raise ConfigurationError(MISSING_API_KEY)

        turn_logger = TurnLoggerAdapter(logger, uuid.uuid4().hex[:8])
        agent = await self.build_agent(turn_logger)
        final_text = None

        try:
            async with aclosing(agent.stream_prompt(message)) as stream:
                async for item in stream:
                    if isinstance(item, StreamedText):
                        await self._emit(sink, StreamFragment.text_delta(item.text))
                    elif isinstance(item, FinalResponse):
                        final_text = item.text
                        break
                    elif isinstance(item, (ToolCallItem, ToolResultItem)):
                        continue
                    else:
                        raise TypeError(f"Unexpected stream item: {item!r}")
        except ModelStreamError as e:
            turn_logger.error(f"Agent stream error: {e}")
            await self._emit(sink, StreamFragment.error(f"Error: {e}"))
            raise ChatTurnError(f"Stream error: {e}") from e

        await self._emit(sink, StreamFragment.final_response(final_text))
