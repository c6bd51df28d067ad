from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


class LLMError(Exception):
    """The AI backend answered with an error or an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None

    @property
    def total_tokens(self) -> int:
        if not self.usage:
            return 0
        total = self.usage.get("total_tokens")
        return total if isinstance(total, int) else 0


class LLMProvider(ABC):
    """Abstract base class for chat-completion providers."""

    @abstractmethod
    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a chat completion."""
        pass
