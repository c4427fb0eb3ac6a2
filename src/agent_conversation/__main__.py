"""
Main entry point for the Agent Conversation application.

This module provides the entry point for running the chat application.
Can be called with: python -m agent_conversation

Automatically opens the app in your browser once the server is reachable.
Disable with --no-open or AGENT_CONVERSATION_NO_BROWSER=1.
"""

import argparse
import logging
import os
import threading
import time
import urllib.error
import urllib.request
import webbrowser

import uvicorn

from .app import app


def main():
    """Main entry point for the Agent Conversation application."""
    parser = argparse.ArgumentParser(
        description="Agent Conversation - Streaming chat with remote tools"
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    parser.add_argument(
        "--no-open",
        action="store_true",
        help="Do not automatically open the browser",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)
    logger.info("Starting chat server...")
    logger.info(f"Open http://localhost:{args.port} in your browser to start chatting")

    # Auto-open the browser once the server is reachable (best-effort)
    def _open_when_ready(url: str, timeout: float = 15.0, interval: float = 0.2):
        deadline = time.time() + timeout
        while time.time() < deadline:
            try:
                with urllib.request.urlopen(url, timeout=1):
                    pass
            except (urllib.error.URLError, TimeoutError, OSError):
                time.sleep(interval)
                continue
            try:
                webbrowser.open(url, new=1)
            except webbrowser.Error as e:
                logger.warning(f"Could not open browser: {e}")
            return

    should_open = (
        not args.no_open and os.environ.get("AGENT_CONVERSATION_NO_BROWSER") != "1"
    )
    url = f"http://localhost:{args.port}"
    if should_open:
        threading.Thread(target=_open_when_ready, args=(url,), daemon=True).start()
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
