"""Units of incremental output forwarded from a chat turn to the UI."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

AGENT_CHUNK_EVENT = "agent-chunk"


class FragmentKind(str, Enum):
    TEXT_DELTA = "text_delta"
    TOOL_INVOCATION = "tool_invocation"
    FINAL_RESPONSE = "final_response"
    ERROR = "error"


@dataclass
class StreamFragment:
    kind: FragmentKind
    delta: Optional[str] = None
    tool_calls: Optional[Any] = None
    # Full answer of a final_response; kept off the UI payload
    text: Optional[str] = None

    @classmethod
    def text_delta(cls, text: str) -> "StreamFragment":
        return cls(FragmentKind.TEXT_DELTA, delta=text)

    @classmethod
    def final_response(cls, text: Optional[str] = None) -> "StreamFragment":
        return cls(FragmentKind.FINAL_RESPONSE, text=text)

    @classmethod
    def error(cls, message: str) -> "StreamFragment":
        return cls(FragmentKind.ERROR, delta=message)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (FragmentKind.FINAL_RESPONSE, FragmentKind.ERROR)

    def to_payload(self) -> dict:
        """Shape the fragment for the UI event channel."""
        return {
            "type": AGENT_CHUNK_EVENT,
            "kind": self.kind.value,
            "delta": self.delta,
            "tool_calls": self.tool_calls,
        }


class EventSink(Protocol):
    """Receiver of fragments; delivery is best-effort."""

    async def emit(self, fragment: StreamFragment) -> None: ...
