import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Union

from .errors import ModelStreamError
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class TurnLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects turn_id into structured logs."""

    def __init__(self, logger, turn_id):
        self.turn_id = turn_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["turn_id"] = self.turn_id
        return msg, kwargs


# Items produced by Agent.stream_prompt


@dataclass
class StreamedText:
    text: str


@dataclass
class ToolCallItem:
    name: str
    arguments: str
    call_id: str


@dataclass
class ToolResultItem:
    name: str
    call_id: str
    output: str


@dataclass
class FinalResponse:
    text: str
    response: Any = None


StreamItem = Union[StreamedText, ToolCallItem, ToolResultItem, FinalResponse]


class Agent:
    """A model plus its tools, driving one prompt through the Responses API.

    ``stream_prompt`` runs the multi-turn tool loop: function calls requested
    by the model are executed through the registry and the results fed back
    until the model answers without calling a tool.
    """

    def __init__(
        self,
        client,
        tool_registry: ToolRegistry,
        model_name: str = "gpt-4o",
        preamble: str = "You are a helpful assistant.",
        max_tokens: Optional[int] = 1024,
        max_turns: int = 8,
        turn_logger: Optional[logging.LoggerAdapter] = None,
    ):
        self.client = client
        self.tool_registry = tool_registry
        self.model_name = model_name
        self.preamble = preamble
        self.max_tokens = max_tokens
        self.max_turns = max_turns
        self.logger = turn_logger or TurnLoggerAdapter(logger, "main")
        self.conversation_context = []

    def log_item(self, item_type: str, extra: dict):
        structured = {"log_type": item_type, **extra}
        self.logger.info(
            f"{item_type.replace('_', ' ').title()} received", extra={"structured": structured}
        )

    def _create_args(self) -> dict:
        create_args = {
            "model": self.model_name,
            "input": self.conversation_context,
            "instructions": self.preamble,
            "tools": self.tool_registry.get_schemas(),
            "stream": True,
            "store": False,  # Zero data retention
        }
        if self.tool_registry.get_schemas():
            create_args["tool_choice"] = "auto"
            create_args["parallel_tool_calls"] = True
        if self.max_tokens:
            create_args["max_output_tokens"] = self.max_tokens
        return create_args

    async def _events(self) -> AsyncIterator[Any]:
        """Yield raw stream events for one model request."""
        try:
            stream = await self.client.responses.create(**self._create_args())
            async for event in stream:
                yield event
        except ModelStreamError:
            raise
        except Exception as e:
            raise ModelStreamError(str(e) or e.__class__.__name__) from e

    async def stream_prompt(self, message: str) -> AsyncIterator[StreamItem]:
        """Stream the model's answer to ``message``.

        Yields
        ------
        StreamItem
            Text deltas as they arrive, tool call and tool result bookkeeping,
            then exactly one ``FinalResponse`` unless the stream ends early.

        Raises
        ------
        ModelStreamError
            If the model request fails, the stream reports an error, or the
            tool loop exceeds ``max_turns``.
        """
        self.log_item("user_input", {"content": message})
        self.conversation_context.append({"role": "user", "content": message})

        for _ in range(self.max_turns):
            function_calls = []
            completed = None

            async for event in self._events():
                event_type = getattr(event, "type", None)

                if event_type == "response.output_text.delta":
                    yield StreamedText(event.delta)

                elif event_type == "response.output_item.done":
                    item = event.item
                    if item.type == "function_call":
                        self.log_item(
                            "tool_call",
                            {"tool_name": item.name, "arguments": item.arguments, "call_id": item.call_id},
                        )
                        function_calls.append(item)
                        yield ToolCallItem(item.name, item.arguments, item.call_id)

                elif event_type in ("response.completed", "response.incomplete"):
                    completed = event.response
                    if event_type == "response.incomplete":
                        details = getattr(completed, "incomplete_details", None)
                        self.logger.warning(f"Response incomplete: {details}")

                elif event_type == "response.failed":
                    error = getattr(event.response, "error", None)
                    raise ModelStreamError(getattr(error, "message", None) or "Response failed")

                elif event_type == "error":
                    raise ModelStreamError(getattr(event, "message", None) or "Stream error")

            if not function_calls:
                if completed is None:
                    # Stream exhausted without a completion event
                    return
                text = getattr(completed, "output_text", "") or ""
                self.log_item("final_response", {"content": text})
                yield FinalResponse(text, completed)
                return

            self.conversation_context.extend(completed.output if completed else function_calls)
            for item in function_calls:
                tool_result = await self.tool_registry.execute_function_call(item)
                self.log_item(
                    "tool_result", {"tool_name": item.name, "result": tool_result["output"]}
                )
                self.conversation_context.append(tool_result)
                yield ToolResultItem(item.name, item.call_id, tool_result["output"])

        raise ModelStreamError(f"Tool loop exceeded {self.max_turns} turns")
