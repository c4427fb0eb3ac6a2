import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse

from .config import Settings
from .connection import ConnectionManager
from .errors import AgentConversationError
from .fragments import StreamFragment
from .orchestrator import ChatOrchestrator

load_dotenv()

logger = logging.getLogger(__name__)

# Get the templates directory (in the same package)
TEMPLATES_DIR = Path(__file__).parent / "templates"


class WebSocketSink:
    """Forwards fragments of a chat turn to a single websocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def emit(self, fragment: StreamFragment) -> None:
        await self.websocket.send_text(json.dumps(fragment.to_payload(), ensure_ascii=False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    if not settings.api_key:
        logger.warning("OPENAI_API_KEY environment variable not set")

    connections = ConnectionManager(settings)
    app.state.orchestrator = ChatOrchestrator(connections, settings)
    try:
        yield
    finally:
        await connections.close()


app = FastAPI(lifespan=lifespan)


async def run_turn(orchestrator: ChatOrchestrator, message: str, sink: WebSocketSink):
    """Run one chat turn; failures were already reported to the sink."""
    try:
        await orchestrator.handle_chat_turn(message, sink)
    except AgentConversationError as e:
        logger.error(f"ERROR: Chat turn failed: {e}")
    except Exception:
        logger.exception("ERROR: Unexpected failure in chat turn")


async def handle_websocket_session(websocket: WebSocket, orchestrator: ChatOrchestrator):
    """Receive user messages and stream each answer back as it is produced."""
    sink = WebSocketSink(websocket)
    turns = set()

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"SYSTEM: Ignoring malformed message: {data!r}")
                continue

            if message_data.get("type", "user_message") != "user_message":
                continue
            content = message_data.get("content", "").strip()
            if not content:
                continue

            task = asyncio.create_task(run_turn(orchestrator, content, sink))
            turns.add(task)
            task.add_done_callback(turns.discard)
    except WebSocketDisconnect:
        logger.info("SYSTEM: Client disconnected")
    finally:
        for task in turns:
            task.cancel()


@app.get("/")
async def get():
    return FileResponse(str(TEMPLATES_DIR / "index.html"))


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    await handle_websocket_session(websocket, websocket.app.state.orchestrator)
