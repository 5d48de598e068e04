"""
Conversation data model and storage interface.

A 'Conversation' owns an ordered, chronological list of messages. Its identity
never changes, messages are only ever appended (the single exception is the
session manager rolling back its own optimistic append after a failed send),
and deletion is whole-conversation only. Each conversation is persisted as one
self-contained record whose name is derived from its creation time and
identity.

The 'ConversationDatabase' ABC is the pluggable storage backend. Concrete
implementations: 'JSONFileConversationDatabase', 'InMemoryConversationDatabase'.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection

from pydantic import BaseModel, Field

from language_tutor.conversation_database.data_models.message import Message
from language_tutor.llms.base import Roles
from language_tutor.utils.database import generate_uid
from language_tutor.utils.time import format_timestamp, get_current_timestamp

DEFAULT_CONVERSATION_TITLE = "New chat"
RECORD_SUFFIX = ".conversation.json"


class Conversation(BaseModel):
    """
    A single chat between the learner and the tutor.

    Attributes:
        title: 'DEFAULT_CONVERSATION_TITLE' until title generation succeeds.
        create_timestamp: Milliseconds since the epoch; drives ordering.
        language: Target language the conversation is held in.
    """

    id: str = Field(default_factory=generate_uid)
    messages: list[Message] = Field(default_factory=list)
    title: str = DEFAULT_CONVERSATION_TITLE
    create_timestamp: int = Field(default_factory=get_current_timestamp)
    language: str = "Korean"

    @property
    def pristine(self) -> bool:
        return not self.messages

    @property
    def has_default_title(self) -> bool:
        return self.title == DEFAULT_CONVERSATION_TITLE

    @property
    def record_name(self) -> str:
        return f"conversation_{format_timestamp(self.create_timestamp)}_{self.id}{RECORD_SUFFIX}"

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def remove_messages(self, message_ids: Collection[str]) -> None:
        self.messages = [message for message in self.messages if message.id not in message_ids]

    def get_message(self, message_id: str) -> Message | None:
        return next((message for message in self.messages if message.id == message_id), None)

    def turns(self) -> list[tuple[Roles, str]]:
        """The (role, text) history sent to the chat model. Replies still streaming are left out."""
        return [(message.role, message.content) for message in self.messages if message.sealed]


class ConversationDatabase(ABC):
    """Abstract repository for 'Conversation' records."""

    @abstractmethod
    async def save_conversation(self, conversation: Conversation) -> None:
        """Write the whole conversation, replacing any previous record for it."""
        pass

    @abstractmethod
    async def get_conversations(self) -> list[Conversation]:
        """Load every stored conversation. Unreadable records are skipped."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation: Conversation) -> bool:
        pass
