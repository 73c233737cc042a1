from app.inference.base import LLMClient
from app.inference.chat_completions_client import ChatCompletionsClient
from app.inference.collaborator import (
    Collaborator,
    call_collaborator,
    collaborator_from_client,
)
from app.inference.config import get_llm_client

__all__ = [
    "LLMClient",
    "ChatCompletionsClient",
    "Collaborator",
    "call_collaborator",
    "collaborator_from_client",
    "get_llm_client",
]
