"""Exceptions raised by the chat core."""


class AgentConversationError(Exception):
    """Base class for all agent_conversation errors."""


class ConfigurationError(AgentConversationError):
    """A required setting (such as the model API key) is missing."""


class ToolServerError(AgentConversationError):
    """The remote tool server could not be reached, initialized or listed."""


class ModelStreamError(AgentConversationError):
    """The model completion stream failed mid-turn."""


class ChatTurnError(AgentConversationError):
    """A chat turn ended in failure; partial output may already be delivered."""
