"""
Conversation and title persistence.

    from language_tutor.conversation_database import Conversation, Message, JSONFileConversationDatabase
"""

from language_tutor.conversation_database.data_models.conversation import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    ConversationDatabase,
)
from language_tutor.conversation_database.data_models.message import Message, SealedMessageError
from language_tutor.conversation_database.data_models.title import TitleDatabase
from language_tutor.conversation_database.in_memory import InMemoryConversationDatabase, InMemoryTitleDatabase
from language_tutor.conversation_database.json_file import JSONFileConversationDatabase, JSONFileTitleDatabase

__all__ = [
    "DEFAULT_CONVERSATION_TITLE",
    "Conversation",
    "ConversationDatabase",
    "InMemoryConversationDatabase",
    "InMemoryTitleDatabase",
    "JSONFileConversationDatabase",
    "JSONFileTitleDatabase",
    "Message",
    "SealedMessageError",
    "TitleDatabase",
]
