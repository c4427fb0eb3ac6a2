"""
Shared, self-healing connection to the remote MCP tool server.

One ``ConnectionManager`` is created per process and handed to everything that
needs remote tools. It keeps at most one live session, checks it before each
reuse and transparently replaces it when that check fails.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Implementation, TextContent

from .config import Settings
from .errors import ToolServerError

logger = logging.getLogger(__name__)

# Seconds to wait for the transport to shut down before cancelling it
CLOSE_TIMEOUT = 5.0


@dataclass
class ToolDescriptor:
    """A callable tool exposed by the remote server."""

    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mcp(cls, tool: Any) -> "ToolDescriptor":
        return cls(
            name=tool.name,
            description=tool.description or "",
            input_schema=normalize_input_schema(tool.inputSchema),
        )


def normalize_input_schema(schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a copy of ``schema`` whose ``required`` lists every top-level property.

    Servers are free to omit ``required``; the model side expects every
    declared property to be required.
    """
    normalized = dict(schema or {})
    properties = normalized.get("properties")
    if isinstance(properties, dict):
        normalized["required"] = list(properties.keys())
    return normalized


class ConnectionHolder:
    """One live session to the tool server plus the task keeping it open.

    The transport and session context managers are entered and exited by
    ``runner``; ``close()`` asks it to exit and waits for it.
    """

    def __init__(
        self,
        session: Any,
        tools: List[ToolDescriptor],
        runner: Optional[asyncio.Task] = None,
        closing: Optional[asyncio.Event] = None,
    ):
        self.session = session
        self.tools = tools
        self._runner = runner
        self._closing = closing or asyncio.Event()

    async def check_alive(self, timeout: float) -> bool:
        """Check the session is still usable with a bounded list_tools round-trip."""
        if self._runner is not None and self._runner.done():
            return False
        try:
            await asyncio.wait_for(self.session.list_tools(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Tool server liveness check timed out after {timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Tool server liveness check failed: {e}")
            return False
        return True

    async def close(self) -> None:
        self._closing.set()
        if self._runner is None or self._runner.done():
            return
        try:
            await asyncio.wait_for(self._runner, timeout=CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Tool server connection did not shut down in time, cancelled")


Connector = Callable[[], Awaitable[ConnectionHolder]]


class ConnectionManager:
    """Owns the single shared connection slot to the tool server."""

    def __init__(self, settings: Optional[Settings] = None, connector: Optional[Connector] = None):
        self.settings = settings or Settings()
        self._connector = connector or self._open_connection
        self._lock = asyncio.Lock()
        self._holder: Optional[ConnectionHolder] = None
        self.connections_created = 0

    @property
    def is_connected(self) -> bool:
        return self._holder is not None

    async def acquire_tools_and_client(self) -> Tuple[List[ToolDescriptor], Any]:
        """Return the current tool list and session, reconnecting if needed.

        Raises
        ------
        ToolServerError
            If a new connection had to be created and creation failed. The
            slot is left empty so the next call starts from scratch.
        """
        async with self._lock:
            holder = self._holder
            if holder is not None:
                if await holder.check_alive(self.settings.liveness_timeout):
                    return list(holder.tools), holder.session
                logger.info("Cached tool server connection is stale, reconnecting")
                self._holder = None
                await holder.close()

            holder = await self._connector()
            self._holder = holder
            self.connections_created += 1
            return list(holder.tools), holder.session

    async def close(self) -> None:
        """Release the cached connection, if any."""
        async with self._lock:
            holder, self._holder = self._holder, None
        if holder is not None:
            await holder.close()
            logger.info("Tool server connection closed")

    async def _open_connection(self) -> ConnectionHolder:
        endpoint = self.settings.endpoint
        logger.info(f"Connecting to tool server at {endpoint}")

        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        closing = asyncio.Event()
        runner = asyncio.create_task(
            self._run_session(endpoint, ready, closing), name="mcp-connection"
        )

        try:
            session = await asyncio.wait_for(
                asyncio.shield(ready), timeout=self.settings.connect_timeout
            )
            result = await asyncio.wait_for(
                session.list_tools(), timeout=self.settings.catalog_timeout
            )
        except BaseException as e:
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)
            if ready.done() and not ready.cancelled():
                ready.exception()  # mark retrieved
            if isinstance(e, asyncio.TimeoutError):
                raise ToolServerError(f"Timed out talking to tool server at {endpoint}") from e
            if isinstance(e, Exception) and not isinstance(e, ToolServerError):
                raise ToolServerError(f"Failed to connect to tool server at {endpoint}: {e}") from e
            raise

        tools = [ToolDescriptor.from_mcp(tool) for tool in result.tools]
        logger.info(f"Connected to tool server with {len(tools)} tools")
        for tool in tools:
            logger.info(f"  - Tool: {tool.name}")
        return ConnectionHolder(session, tools, runner=runner, closing=closing)

    async def _run_session(self, endpoint: str, ready: asyncio.Future, closing: asyncio.Event):
        """Hold the transport and session open until ``closing`` is set."""
        client_info = Implementation(
            name=self.settings.client_name, version=self.settings.client_version
        )
        try:
            async with streamablehttp_client(endpoint) as (read_stream, write_stream, _):
                async with ClientSession(
                    read_stream, write_stream, client_info=client_info
                ) as session:
                    await session.initialize()
                    ready.set_result(session)
                    await closing.wait()
        except Exception as e:
            cause = root_cause(e)
            if not ready.done():
                ready.set_exception(cause)
            else:
                logger.warning(f"Tool server connection ended: {cause}")
        finally:
            if not ready.done():
                ready.set_exception(ToolServerError("Connection closed before handshake completed"))


def root_cause(exc: BaseException) -> BaseException:
    """Return the first leaf of a (possibly nested) exception group."""
    while getattr(exc, "exceptions", None) and isinstance(exc.exceptions[0], Exception):
        exc = exc.exceptions[0]
    return exc


def render_tool_result(result: Any) -> str:
    """Flatten an MCP CallToolResult into text for the model."""
    parts = []
    for item in result.content or []:
        if isinstance(item, TextContent):
            parts.append(item.text)
        else:
            parts.append(json.dumps(item.model_dump(mode="json"), ensure_ascii=False))

    if not parts and getattr(result, "structuredContent", None):
        parts.append(json.dumps(result.structuredContent, ensure_ascii=False))

    text = "\n".join(parts)
    if result.isError:
        return f"Error: {text}"
    return text


async def call_remote_tool(client: Any, name: str, arguments: Dict[str, Any]) -> str:
    """Invoke a tool on the remote server through ``client`` and return its text output."""
    result = await client.call_tool(name, arguments)
    return render_tool_result(result)
