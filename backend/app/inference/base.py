from abc import ABC, abstractmethod
from typing import Dict, List

Message = Dict[str, str]


class LLMClient(ABC):
    """Blocking chat client; collaborator_from_client makes it awaitable."""

    model: str

    @abstractmethod
    def generate(self, messages: List[Message]) -> str:
        """
        Return the assistant text for the chat messages, code fences removed.
        Raise on transport or HTTP failure.
        """
        pass
