"""
In-memory storage backends for tests and throwaway sessions.

Records are stored as serialised JSON so that a save followed by a load goes
through the same encode/decode path as the file backend and never hands back
the live object.
"""

from collections.abc import Mapping

from language_tutor.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from language_tutor.conversation_database.data_models.title import TitleDatabase


class InMemoryConversationDatabase(ConversationDatabase):
    def __init__(self) -> None:
        self.records: dict[str, str] = {}
        self.save_count = 0

    async def save_conversation(self, conversation: Conversation) -> None:
        self.records[conversation.record_name] = conversation.model_dump_json()
        self.save_count += 1

    async def get_conversations(self) -> list[Conversation]:
        return [Conversation.model_validate_json(record) for record in self.records.values()]

    async def delete_conversation(self, conversation: Conversation) -> bool:
        return self.records.pop(conversation.record_name, None) is not None


class InMemoryTitleDatabase(TitleDatabase):
    def __init__(self, titles: Mapping[str, str] | None = None) -> None:
        self.titles: dict[str, str] = dict(titles or {})

    async def load_titles(self) -> dict[str, str]:
        return dict(self.titles)

    async def save_titles(self, titles: Mapping[str, str]) -> None:
        self.titles = dict(titles)
