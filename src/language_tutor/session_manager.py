"""
Conversation session manager (Facade).

'SessionManager' is the single entry point the client UI talks to. It owns the
in-memory conversation map, the most-recent-first ordering, the active
conversation pointer and the input buffer, and coordinates the chat client,
streaming assembler, title cache, audio pipeline and error status around them.

All state is owned by the asyncio event loop the manager runs on. Network and
file I/O are awaited (file access runs in worker threads inside the storage
backends) and results are applied back on the loop, so no locking is needed.
A send captures its target conversation when it starts; a reply that arrives
after the user switched conversations still lands in the conversation it was
sent from.

The main entry points are:

    'send_message'          - optimistic append, streamed reply, persistence and
                              title generation; rollback and input restore when
                              the request fails before any reply text arrived.
    'add_conversation'      - new conversation, reusing a pristine one if the
                              most recent conversation is still empty.
    'hear'                  - play target-language audio for a message.
    'transcribe_recording'  - append a transcript of recorded speech to the
                              input buffer.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable

from loguru import logger

from language_tutor.audio.pipeline import AudioPipeline, LoadingCallback, PlaybackSpeed
from language_tutor.audio.speech import SpeechService
from language_tutor.conversation_database.data_models.conversation import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    ConversationDatabase,
)
from language_tutor.conversation_database.data_models.message import Message
from language_tutor.error_status import ErrorStatus
from language_tutor.errors import ChatClientError, LocalIOError
from language_tutor.llms.base import Roles
from language_tutor.llms.chat_client import ChatClient
from language_tutor.prompts import ChatRole, validate_language
from language_tutor.streaming import StreamingResponseAssembler
from language_tutor.title_cache import TitleCache

SessionListener = Callable[["SessionManager"], None]

# A conversation is written to storage once it holds at least this many messages.
PERSIST_THRESHOLD = 2


class SessionManager:
    """
    Owns the open conversations and orchestrates every conversation turn.

    Attributes:
        conversations: Conversation identity to conversation; the only copy.
        conversation_order: Conversation identities, most recently created first.
        active_conversation_id: The conversation new input goes to.
        input_text: The learner's unsent input buffer.
        language: Target language for conversations created from now on.
        streaming: Request streamed replies (True) or single-shot replies.
    """

    def __init__(
        self,
        chat_client: ChatClient,
        conversation_db: ConversationDatabase,
        title_cache: TitleCache,
        audio_pipeline: AudioPipeline,
        speech: SpeechService,
        error_status: ErrorStatus,
        language: str = "Korean",
        streaming: bool = True,
    ) -> None:
        self.chat_client = chat_client
        self.conversation_db = conversation_db
        self.title_cache = title_cache
        self.audio_pipeline = audio_pipeline
        self.speech = speech
        self.error_status = error_status
        self.language = validate_language(language)
        self.streaming = streaming

        self.conversations: dict[str, Conversation] = {}
        self.conversation_order: list[str] = []
        self.active_conversation_id: str | None = None
        self.input_text = ""

        self._listeners: list[SessionListener] = []
        self._background_tasks: set[asyncio.Task[None]] = set()

    # Observation

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call 'listener' after every state change; the returned callable unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(f"Session listener {listener!r} failed")

    @property
    def active_conversation(self) -> Conversation:
        if self.active_conversation_id is None:
            raise RuntimeError("No active conversation; call start() or add_conversation() first")
        return self.conversations[self.active_conversation_id]

    def ordered_conversations(self) -> list[Conversation]:
        return [self.conversations[conversation_id] for conversation_id in self.conversation_order]

    # Lifecycle

    async def start(self) -> None:
        """Load stored conversations and titles, open a pristine conversation, backfill missing titles."""
        await self.title_cache.load()
        try:
            loaded = await self.conversation_db.get_conversations()
        except LocalIOError as exc:
            logger.warning(f"Starting without stored conversations: {exc}")
            loaded = []

        for conversation in loaded:
            memoised = self.title_cache.get(conversation.id)
            if memoised is not None and conversation.has_default_title:
                conversation.title = memoised
            self.conversations[conversation.id] = conversation
        self.conversation_order = [
            conversation.id for conversation in sorted(loaded, key=lambda c: c.create_timestamp, reverse=True)
        ]
        logger.info(f"Session started with {len(loaded)} stored conversations")

        self.add_conversation()
        self.generate_missing_titles()

    async def wait_for_background_tasks(self) -> None:
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))

    async def aclose(self) -> None:
        await self.wait_for_background_tasks()
        await self.audio_pipeline.player.stop()

    # Conversations

    def add_conversation(self) -> Conversation:
        if self.conversation_order:
            most_recent = self.conversations[self.conversation_order[0]]
            if most_recent.pristine:
                self.active_conversation_id = most_recent.id
                self._notify()
                return most_recent

        conversation = Conversation(language=self.language)
        self.conversations[conversation.id] = conversation
        self.conversation_order.insert(0, conversation.id)
        self.active_conversation_id = conversation.id
        logger.debug(f"Created conversation {conversation.id} ({conversation.language})")
        self._notify()
        return conversation

    def select_conversation(self, conversation_id: str) -> Conversation:
        if conversation_id not in self.conversations:
            raise KeyError(f"Unknown conversation {conversation_id}")
        self.active_conversation_id = conversation_id
        self._notify()
        return self.conversations[conversation_id]

    async def delete_conversation(self, conversation_id: str) -> None:
        conversation = self.conversations.pop(conversation_id)
        self.conversation_order.remove(conversation_id)
        try:
            await self.conversation_db.delete_conversation(conversation)
        except LocalIOError as exc:
            logger.warning(f"Stored record of conversation {conversation_id} not deleted: {exc}")
        await self.title_cache.forget(conversation_id)

        if self.active_conversation_id == conversation_id:
            self.active_conversation_id = None
            self.add_conversation()
        else:
            self._notify()

    def set_language(self, language: str) -> None:
        self.language = validate_language(language)
        conversation = self.conversations.get(self.active_conversation_id or "")
        if conversation is not None and conversation.pristine:
            conversation.language = self.language
        self._notify()

    # Sending

    async def send_message(self, text: str | None = None) -> Message | None:
        """Send 'text' (default: the input buffer) to the active conversation.

        Returns the sealed assistant reply, or None if nothing was sent or the
        request failed.
        """
        if text is None:
            text = self.input_text
        if not text:
            return None

        conversation = self.active_conversation
        user_message = Message(role=Roles.USER, content=text)
        conversation.append(user_message)
        self.input_text = ""
        history = conversation.turns()

        reply = Message.placeholder()
        conversation.append(reply)
        self._notify()

        assembler = StreamingResponseAssembler(reply, on_update=lambda _: self._notify())
        try:
            await assembler.consume(self._reply_stream(conversation.language, history))
        except ChatClientError as exc:
            await self._handle_send_failure(conversation, user_message, reply, text, assembler, exc)
            return None

        self.error_status.set_happy()
        self._notify()
        await self._after_model_turn(conversation)
        return reply

    async def _reply_stream(self, language: str, history: list[tuple[Roles, str]]) -> AsyncGenerator[str, None]:
        if self.streaming:
            async for delta in self.chat_client.stream_chat(language, ChatRole.ADVISOR, history):
                yield delta
        else:
            yield await self.chat_client.complete_chat(language, ChatRole.ADVISOR, history)

    async def _handle_send_failure(
        self,
        conversation: Conversation,
        user_message: Message,
        reply: Message,
        text: str,
        assembler: StreamingResponseAssembler,
        error: ChatClientError,
    ) -> None:
        if assembler.deltas_applied == 0:
            logger.info(f"Rolling back unsent message in conversation {conversation.id}")
            conversation.remove_messages({user_message.id, reply.id})
            self.input_text = text
        else:
            logger.info(f"Keeping partial reply {reply.id} in conversation {conversation.id}")
            await self._persist(conversation)
        self.error_status.set_from_error(error)
        self._notify()

    async def _after_model_turn(self, conversation: Conversation) -> None:
        if conversation.id not in self.conversations:
            logger.debug(f"Conversation {conversation.id} was deleted while its reply was streaming")
            return
        if len(conversation.messages) >= PERSIST_THRESHOLD:
            await self._persist(conversation)
            if conversation.has_default_title:
                self._schedule_title_generation(conversation)

    async def _persist(self, conversation: Conversation) -> None:
        if conversation.id not in self.conversations or len(conversation.messages) < PERSIST_THRESHOLD:
            return
        try:
            await self.conversation_db.save_conversation(conversation)
        except LocalIOError as exc:
            logger.warning(f"Conversation {conversation.id} not saved: {exc}")

    # Titles

    def generate_missing_titles(self) -> None:
        for conversation in self.ordered_conversations():
            if len(conversation.messages) >= PERSIST_THRESHOLD and conversation.has_default_title:
                self._schedule_title_generation(conversation)

    def _schedule_title_generation(self, conversation: Conversation) -> None:
        task = asyncio.create_task(self._apply_generated_title(conversation), name=f"apply-title-{conversation.id}")
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _apply_generated_title(self, conversation: Conversation) -> None:
        title = await self.title_cache.get_or_generate_title(conversation)
        if conversation.id not in self.conversations:
            await self.title_cache.forget(conversation.id)
            return
        if title == DEFAULT_CONVERSATION_TITLE:
            return
        conversation.title = title
        await self._persist(conversation)
        self._notify()

    # Audio

    def _find_message(self, message_id: str) -> tuple[Conversation, Message]:
        for conversation in self.conversations.values():
            message = conversation.get_message(message_id)
            if message is not None:
                return conversation, message
        raise KeyError(f"Unknown message {message_id}")

    async def hear(self, message_id: str, on_loading: LoadingCallback | None = None) -> bool:
        """Play target-language audio for a message; returns True if audio was played."""
        conversation, message = self._find_message(message_id)
        if not message.sealed:
            logger.info(f"Message {message_id} is still streaming; not producing audio yet")
            return False
        return await self.audio_pipeline.play(message, conversation.language, on_loading)

    def toggle_slow_mode(self) -> PlaybackSpeed:
        speed = self.audio_pipeline.toggle_slow_mode()
        self._notify()
        return speed

    async def transcribe_recording(self, audio: bytes, filename: str = "recording.m4a") -> str | None:
        """Append a transcript of 'audio' to the input buffer and return it."""
        try:
            transcript = await self.speech.transcribe(audio, filename)
        except ChatClientError as exc:
            logger.warning(f"Transcription failed: {exc}")
            self.error_status.set_from_error(exc)
            return None
        self.error_status.set_happy()
        self.input_text += transcript
        logger.debug(f"Input buffer extended with transcript: {transcript!r}")
        self._notify()
        return transcript
