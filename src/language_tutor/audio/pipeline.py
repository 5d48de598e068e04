"""
Audio pipeline: from a chat message to spoken target-language audio.

'AudioPipeline.play' resolves audio for a message in this order:

    1. Cache hit: play the cached file straight away, no network calls.
    2. Extraction: ask the chat model (extractor role) for only the
       target-language part of the message. A 'NO_TARGET_LANGUAGE_TEXT' reply
       ends the pipeline without audio and without a cache entry.
    3. Synthesis: turn the extracted text into audio, store it in the cache,
       then play it.

Extraction and synthesis failures are terminal for that call and are
reported to 'ErrorStatus'; nothing is cached, so a later call starts over.
Concurrent calls for the same message share one in-flight production task,
so a message is extracted and synthesised at most once at a time.

The playback speed is pipeline-wide. It applies to whatever is played next and
never invalidates cached audio.
"""

import asyncio
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path

from loguru import logger

from language_tutor.audio.cache import AudioCache
from language_tutor.audio.player import AudioPlayer, PlaybackError
from language_tutor.audio.speech import SpeechService
from language_tutor.conversation_database.data_models.message import Message
from language_tutor.error_status import ErrorStatus
from language_tutor.errors import ChatClientError, LocalIOError
from language_tutor.llms.base import Roles
from language_tutor.llms.chat_client import ChatClient
from language_tutor.prompts import NO_TARGET_LANGUAGE_TEXT, ChatRole

LoadingCallback = Callable[[bool], None]


class PlaybackSpeed(StrEnum):
    NORMAL = "normal"
    SLOW = "slow"


class AudioPipeline:
    """
    Extract, synthesise, cache and play target-language audio for messages.

    Attributes:
        speed: Current 'PlaybackSpeed' applied to the next playback.
        slow_rate: Playback rate used while 'speed' is SLOW.
    """

    def __init__(
        self,
        chat_client: ChatClient,
        speech: SpeechService,
        player: AudioPlayer,
        cache: AudioCache,
        error_status: ErrorStatus,
        slow_rate: float = 0.75,
    ) -> None:
        self.chat_client = chat_client
        self.speech = speech
        self.player = player
        self.cache = cache
        self.error_status = error_status
        self.slow_rate = slow_rate
        self.speed = PlaybackSpeed.NORMAL
        self._in_flight: dict[str, asyncio.Task[bool]] = {}

    @property
    def rate(self) -> float:
        return self.slow_rate if self.speed == PlaybackSpeed.SLOW else 1.0

    def set_speed(self, speed: PlaybackSpeed) -> None:
        self.speed = speed

    def toggle_slow_mode(self) -> PlaybackSpeed:
        self.speed = PlaybackSpeed.NORMAL if self.speed == PlaybackSpeed.SLOW else PlaybackSpeed.SLOW
        return self.speed

    async def play(self, message: Message, language: str, on_loading: LoadingCallback | None = None) -> bool:
        """Play audio for 'message'; returns True if something was played.

        'on_loading' is called with True before any network work starts and
        with False when this call's loading ends, whatever the outcome. It is
        not called on a cache hit.
        """
        cached = await self.cache.lookup(message)
        if cached is not None:
            logger.debug(f"Audio cache hit for message {message.id}")
            return await self._start_playback(cached)

        task = self._in_flight.get(message.id)
        if task is None:
            task = asyncio.create_task(self._produce(message, language), name=f"audio-{message.id}")
            self._in_flight[message.id] = task
        else:
            logger.debug(f"Joining in-flight audio production for message {message.id}")

        if on_loading is not None:
            on_loading(True)
        try:
            return await asyncio.shield(task)
        finally:
            if on_loading is not None:
                on_loading(False)

    async def _produce(self, message: Message, language: str) -> bool:
        try:
            # A task that finished while this call was checking the cache may have stored the audio already.
            cached = await self.cache.lookup(message)
            if cached is not None:
                return await self._start_playback(cached)
            try:
                extracted = await self.chat_client.complete_chat(
                    language, ChatRole.EXTRACTOR, [(Roles.USER, message.content)]
                )
                extracted = extracted.strip()
                if not extracted or NO_TARGET_LANGUAGE_TEXT in extracted:
                    logger.info(f"No {language} text found in message {message.id}")
                    self.error_status.set_happy()
                    return False
                logger.debug(f"Extracted for message {message.id}: {extracted!r}")
                audio = await self.speech.synthesize(extracted)
            except ChatClientError as exc:
                logger.warning(f"Audio for message {message.id} failed: {exc}")
                self.error_status.set_from_error(exc)
                return False

            self.error_status.set_happy()
            try:
                path = await self.cache.store(message, audio)
            except LocalIOError as exc:
                logger.warning(f"Audio for message {message.id} not cached: {exc}")
                return False
            return await self._start_playback(path)
        finally:
            self._in_flight.pop(message.id, None)

    async def _start_playback(self, path: Path) -> bool:
        try:
            await self.player.play(path, self.rate)
        except PlaybackError as exc:
            logger.warning(f"Playback of {path.name} failed: {exc}")
            return False
        return True
