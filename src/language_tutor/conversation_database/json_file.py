"""
JSON-file storage backends.

'JSONFileConversationDatabase' keeps one JSON record per conversation in a
directory; the file name comes from 'Conversation.record_name'. Loading scans
the directory for records and skips (and logs) any that cannot be decoded.
'JSONFileTitleDatabase' keeps the whole title index in one JSON document.

All file access runs in a worker thread via 'asyncio.to_thread' so the event
loop that owns conversation state is never blocked. Writes go through a
temporary file and an atomic replace. Failures are raised as 'LocalIOError'.
"""

import asyncio
import json
from collections.abc import Mapping
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from language_tutor.conversation_database.data_models.conversation import (
    RECORD_SUFFIX,
    Conversation,
    ConversationDatabase,
)
from language_tutor.conversation_database.data_models.title import TitleDatabase
from language_tutor.errors import LocalIOError
from language_tutor.utils.files import atomic_write_bytes


class JSONFileConversationDatabase(ConversationDatabase):
    """Conversation records stored as '<directory>/conversation_<time>_<id>.conversation.json'."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, conversation: Conversation) -> Path:
        return self.directory / conversation.record_name

    def _write(self, conversation: Conversation) -> None:
        atomic_write_bytes(self._path_for(conversation), conversation.model_dump_json(indent=2).encode("utf-8"))

    def _read_all(self) -> list[Conversation]:
        if not self.directory.exists():
            return []
        conversations = []
        for path in sorted(self.directory.glob(f"*{RECORD_SUFFIX}")):
            try:
                conversations.append(Conversation.model_validate_json(path.read_bytes()))
            except (OSError, ValidationError) as exc:
                logger.warning(f"Skipping unreadable conversation record {path.name}: {exc}")
        return conversations

    async def save_conversation(self, conversation: Conversation) -> None:
        try:
            await asyncio.to_thread(self._write, conversation)
        except OSError as exc:
            raise LocalIOError(f"Could not save conversation {conversation.id}: {exc}") from exc
        logger.debug(f"Saved conversation {conversation.id} ({len(conversation.messages)} messages)")

    async def get_conversations(self) -> list[Conversation]:
        try:
            conversations = await asyncio.to_thread(self._read_all)
        except OSError as exc:
            raise LocalIOError(f"Could not list conversations in {self.directory}: {exc}") from exc
        logger.info(f"Loaded {len(conversations)} conversations from {self.directory}")
        return conversations

    async def delete_conversation(self, conversation: Conversation) -> bool:
        path = self._path_for(conversation)
        try:
            existed = path.exists()
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise LocalIOError(f"Could not delete conversation {conversation.id}: {exc}") from exc
        return existed


class JSONFileTitleDatabase(TitleDatabase):
    """The title index stored as a single JSON object."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        titles = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(titles, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return {str(key): str(value) for key, value in titles.items()}

    async def load_titles(self) -> dict[str, str]:
        try:
            return await asyncio.to_thread(self._read)
        except (OSError, ValueError) as exc:
            raise LocalIOError(f"Could not load titles from {self.path}: {exc}") from exc

    async def save_titles(self, titles: Mapping[str, str]) -> None:
        data = json.dumps(dict(titles), ensure_ascii=False, indent=2).encode("utf-8")
        try:
            await asyncio.to_thread(atomic_write_bytes, self.path, data)
        except OSError as exc:
            raise LocalIOError(f"Could not save titles to {self.path}: {exc}") from exc
