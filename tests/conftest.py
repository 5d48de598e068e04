import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from language_tutor.audio.cache import AudioCache
from language_tutor.audio.pipeline import AudioPipeline
from language_tutor.audio.player import AudioPlayer, PlaybackError
from language_tutor.audio.speech import SpeechService
from language_tutor.conversation_database.in_memory import InMemoryConversationDatabase, InMemoryTitleDatabase
from language_tutor.error_status import ErrorStatus
from language_tutor.llms.base import LLM, LLMMessage, Roles
from language_tutor.llms.chat_client import ChatClient
from language_tutor.prompts import ChatRole
from language_tutor.session_manager import SessionManager
from language_tutor.title_cache import TitleCache


class FakeLLM(LLM):
    """Scripted backend. Each call consumes the next scripted reply or stream.

    Replies and stream items that are exceptions are raised at that point.
    When 'gate' is set, both methods wait on it before answering.
    """

    def __init__(
        self,
        replies: list[str | Exception] | None = None,
        streams: list[list[str | Exception]] | None = None,
        model_name: str = "fake-model",
    ) -> None:
        self.model_name = model_name
        self.replies = list(replies or [])
        self.streams = list(streams or [])
        self.generate_calls: list[list[LLMMessage]] = []
        self.stream_calls: list[list[LLMMessage]] = []
        self.gate: asyncio.Event | None = None

    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        self.generate_calls.append(conversation)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        reply = self.replies.pop(0) if self.replies else "default reply"
        if isinstance(reply, Exception):
            raise reply
        return LLMMessage(role=Roles.ASSISTANT, content=reply)

    async def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        self.stream_calls.append(conversation)
        items = self.streams.pop(0) if self.streams else ["default reply"]
        if self.gate is not None:
            await self.gate.wait()
        for item in items:
            await asyncio.sleep(0)
            if isinstance(item, Exception):
                raise item
            yield LLMMessage(role=Roles.ASSISTANT, content=item)


class FakeSpeechService(SpeechService):
    def __init__(self, audio: bytes = b"ID3-fake-mp3", transcript: str = "안녕하세요") -> None:
        self.audio = audio
        self.transcript = transcript
        self.synthesize_calls: list[str] = []
        self.transcribe_calls: list[tuple[bytes, str]] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def synthesize(self, text: str) -> bytes:
        self.synthesize_calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.audio

    async def transcribe(self, audio: bytes, filename: str = "recording.m4a") -> str:
        self.transcribe_calls.append((audio, filename))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.transcript


class FakeAudioPlayer(AudioPlayer):
    def __init__(self) -> None:
        self.played: list[tuple[Path, float]] = []
        self.fail = False
        self.stopped = 0

    async def play(self, path: Path, rate: float) -> None:
        if self.fail:
            raise PlaybackError(f"cannot play {path}")
        self.played.append((path, rate))

    async def stop(self) -> None:
        self.stopped += 1


@pytest.fixture
def advisor() -> FakeLLM:
    return FakeLLM(model_name="fake-advisor")


@pytest.fixture
def utility() -> FakeLLM:
    return FakeLLM(model_name="fake-utility")


@pytest.fixture
def chat_client(advisor: FakeLLM, utility: FakeLLM) -> ChatClient:
    return ChatClient({ChatRole.ADVISOR: advisor, ChatRole.EXTRACTOR: utility, ChatRole.TITLER: utility})


@pytest.fixture
def error_status() -> ErrorStatus:
    return ErrorStatus()


@pytest.fixture
def speech() -> FakeSpeechService:
    return FakeSpeechService()


@pytest.fixture
def player() -> FakeAudioPlayer:
    return FakeAudioPlayer()


@pytest.fixture
def conversation_db() -> InMemoryConversationDatabase:
    return InMemoryConversationDatabase()


@pytest.fixture
def title_db() -> InMemoryTitleDatabase:
    return InMemoryTitleDatabase()


@pytest.fixture
def title_cache(chat_client: ChatClient, title_db: InMemoryTitleDatabase, error_status: ErrorStatus) -> TitleCache:
    return TitleCache(chat_client, title_db, error_status)


@pytest.fixture
def audio_pipeline(
    chat_client: ChatClient,
    speech: FakeSpeechService,
    player: FakeAudioPlayer,
    error_status: ErrorStatus,
    tmp_path: Path,
) -> AudioPipeline:
    return AudioPipeline(
        chat_client=chat_client,
        speech=speech,
        player=player,
        cache=AudioCache(tmp_path / "audio"),
        error_status=error_status,
        slow_rate=0.7,
    )


@pytest.fixture
def manager(
    chat_client: ChatClient,
    conversation_db: InMemoryConversationDatabase,
    title_cache: TitleCache,
    audio_pipeline: AudioPipeline,
    speech: FakeSpeechService,
    error_status: ErrorStatus,
) -> SessionManager:
    return SessionManager(
        chat_client=chat_client,
        conversation_db=conversation_db,
        title_cache=title_cache,
        audio_pipeline=audio_pipeline,
        speech=speech,
        error_status=error_status,
        language="Korean",
    )
