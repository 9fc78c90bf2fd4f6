"""Service layer orchestrations for ragchat."""

from .chat import ChatService, PromptBuilder, PromptBuilderConfig
from .conversation import ConversationLog
from .generation import CompletionClient, GenerationBackend, GenerationConfig

__all__ = [
    "ChatService",
    "CompletionClient",
    "ConversationLog",
    "GenerationBackend",
    "GenerationConfig",
    "PromptBuilder",
    "PromptBuilderConfig",
]
