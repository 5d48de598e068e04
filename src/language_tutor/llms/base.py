"""
Core LLM abstractions and message data models.

Every chat backend ('OpenAILLM', or a fake in tests) implements the 'LLM' ABC.
The message format ('LLMMessage') is backend-agnostic so the chat client and
the session manager never need to know which backend is in use.

Backends are responsible for classifying their own transport failures: both
'generate' and 'generate_stream' raise only 'ChatClientError', never a raw
transport exception. Backends perform no retries.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from enum import StrEnum

from pydantic import BaseModel


class Roles(StrEnum):
    """Conversation roles as used by the OpenAI chat completions API."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class LLMMessage(BaseModel):
    """A single message in a conversation sent to or received from an LLM.

    For streamed responses each yielded 'LLMMessage' carries one content delta,
    not the accumulated text.
    """

    content: str = ""
    role: Roles = Roles.ASSISTANT


class LLM(ABC):
    """
    Abstract base class for language model backends.

    Concrete implementations adapt a specific API client to a common interface.
    The model name is part of the backend instance, so selecting a model for a
    chat role means selecting an 'LLM' instance.
    """

    model_name: str

    @abstractmethod
    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        """Return a single complete response for the given conversation."""
        pass

    @abstractmethod
    def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        """Yield content deltas in arrival order; the generator ends when the terminal marker arrives."""
        pass
