"""
The `ai` package talks to the completion endpoint and gathers the shell
context that goes along with every request.
"""

from .context import gather_context
from .llm import (
    CompletionError,
    CompletionSettings,
    ConfigurationError,
    LLMClient,
    ProtocolError,
    TransportError,
    parse_command,
    request_command,
)


__all__ = [
    "CompletionError",
    "CompletionSettings",
    "ConfigurationError",
    "LLMClient",
    "ProtocolError",
    "TransportError",
    "gather_context",
    "parse_command",
    "request_command",
]
