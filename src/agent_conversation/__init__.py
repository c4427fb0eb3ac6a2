"""
Agent Conversation - A streaming chat application with remote MCP tools.

This package streams OpenAI model output to a UI while augmenting the model
with tools discovered from a remote tool server over a shared, self-healing
connection.
"""

__version__ = "0.1.0"

from .connection import ConnectionManager, ToolDescriptor, normalize_input_schema
from .fragments import FragmentKind, StreamFragment
from .orchestrator import ChatOrchestrator

__all__ = [
    "ChatOrchestrator",
    "ConnectionManager",
    "FragmentKind",
    "StreamFragment",
    "ToolDescriptor",
    "normalize_input_schema",
]
