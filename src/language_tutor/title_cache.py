"""
Conversation title cache.

'TitleCache' memoises one short title per conversation identity and generates
missing ones with the chat model in titler mode. At most one generation request
per conversation is in flight at a time: callers that arrive while a request is
running await the same task instead of issuing their own. A failed generation
returns the default title without memoising anything, so the next call tries
again. The memo is mirrored to a 'TitleDatabase' after every change, and a
successful generation clears the 'ErrorStatus' flags.
"""

import asyncio

from loguru import logger

from language_tutor.conversation_database.data_models.conversation import DEFAULT_CONVERSATION_TITLE, Conversation
from language_tutor.conversation_database.data_models.title import TitleDatabase
from language_tutor.error_status import ErrorStatus
from language_tutor.errors import ChatClientError, LocalIOError
from language_tutor.llms.base import Roles
from language_tutor.llms.chat_client import ChatClient
from language_tutor.prompts import ChatRole

_QUOTE_CHARACTERS = "\"'“”‘’«»「」"


def clean_title(raw: str) -> str:
    """Strip surrounding whitespace and wrapping quote characters from a model reply."""
    return raw.strip().strip(_QUOTE_CHARACTERS).strip()


class TitleCache:
    """
    Memoised, deduplicated title generation.

    Attributes:
        titles: Conversation identity to memoised title.
    """

    def __init__(
        self, chat_client: ChatClient, title_db: TitleDatabase, error_status: ErrorStatus | None = None
    ) -> None:
        self.chat_client = chat_client
        self.title_db = title_db
        self.error_status = error_status
        self.titles: dict[str, str] = {}
        self._in_flight: dict[str, asyncio.Task[str]] = {}

    async def load(self) -> None:
        try:
            self.titles = await self.title_db.load_titles()
        except LocalIOError as exc:
            logger.warning(f"Starting with an empty title index: {exc}")
            self.titles = {}

    def get(self, conversation_id: str) -> str | None:
        return self.titles.get(conversation_id)

    def is_generating(self, conversation_id: str) -> bool:
        return conversation_id in self._in_flight

    async def get_or_generate_title(self, conversation: Conversation) -> str:
        title = self.titles.get(conversation.id)
        if title is not None:
            return title
        if conversation.pristine:
            return DEFAULT_CONVERSATION_TITLE

        task = self._in_flight.get(conversation.id)
        if task is None:
            task = asyncio.create_task(
                self._generate(conversation.id, conversation.language, conversation.turns()),
                name=f"title-{conversation.id}",
            )
            self._in_flight[conversation.id] = task
        # Shielded so one caller being cancelled does not cancel the request for the others.
        return await asyncio.shield(task)

    async def _generate(self, conversation_id: str, language: str, history: list[tuple[Roles, str]]) -> str:
        try:
            raw_title = await self.chat_client.complete_chat(language, ChatRole.TITLER, history)
        except ChatClientError as exc:
            logger.warning(f"Title generation for {conversation_id} failed: {exc}")
            return DEFAULT_CONVERSATION_TITLE
        finally:
            self._in_flight.pop(conversation_id, None)

        if self.error_status is not None:
            self.error_status.set_happy()
        title = clean_title(raw_title)
        if not title:
            logger.warning(f"Title generation for {conversation_id} returned an empty title")
            return DEFAULT_CONVERSATION_TITLE

        logger.info(f"Generated title for {conversation_id}: {title!r}")
        self.titles[conversation_id] = title
        await self._save()
        return title

    async def forget(self, conversation_id: str) -> None:
        if self.titles.pop(conversation_id, None) is not None:
            await self._save()

    async def _save(self) -> None:
        try:
            await self.title_db.save_titles(self.titles)
        except LocalIOError as exc:
            logger.warning(f"Title index not saved: {exc}")
