"""
Composition root.

Builds every component from 'Settings' and wires them together explicitly.
There are no module-level singletons: tests and alternative front ends call
'build_session_manager' with their own backends.
"""

from loguru import logger

from language_tutor.audio.cache import AudioCache
from language_tutor.audio.pipeline import AudioPipeline
from language_tutor.audio.player import AudioPlayer, SubprocessAudioPlayer
from language_tutor.audio.speech import OpenAISpeechService, SpeechService
from language_tutor.config import Settings
from language_tutor.conversation_database.json_file import JSONFileConversationDatabase, JSONFileTitleDatabase
from language_tutor.error_status import ErrorStatus
from language_tutor.llms.base import LLM
from language_tutor.llms.chat_client import ChatClient
from language_tutor.llms.openai import OpenAILLM
from language_tutor.prompts import ChatRole
from language_tutor.session_manager import SessionManager
from language_tutor.title_cache import TitleCache


def build_llms(settings: Settings) -> dict[ChatRole, LLM]:
    """One backend per model: the advisor gets its own, extractor and titler share the utility model."""
    advisor = OpenAILLM(
        model_name=settings.advisor_model,
        temperature=settings.temperature,
        openai_api_key=settings.openai_api_key,
        base_url=settings.base_url,
    )
    utility = OpenAILLM(
        model_name=settings.utility_model,
        temperature=0.0,
        openai_api_key=settings.openai_api_key,
        base_url=settings.base_url,
    )
    logger.info(f"Chat models: advisor={settings.advisor_model} utility={settings.utility_model}")
    return {ChatRole.ADVISOR: advisor, ChatRole.EXTRACTOR: utility, ChatRole.TITLER: utility}


def build_session_manager(
    settings: Settings,
    *,
    llms: dict[ChatRole, LLM] | None = None,
    speech: SpeechService | None = None,
    player: AudioPlayer | None = None,
) -> SessionManager:
    """Assemble a 'SessionManager' backed by JSON files under 'settings.data_dir'.

    Pass 'llms', 'speech' or 'player' to replace the OpenAI and subprocess
    defaults. Call 'await manager.start()' before use.
    """
    chat_client = ChatClient(llms if llms is not None else build_llms(settings))
    if speech is None:
        speech = OpenAISpeechService(
            speech_model=settings.speech_model,
            voice=settings.speech_voice,
            transcription_model=settings.transcription_model,
            openai_api_key=settings.openai_api_key,
            base_url=settings.base_url,
        )
    error_status = ErrorStatus()
    audio_pipeline = AudioPipeline(
        chat_client=chat_client,
        speech=speech,
        player=player or SubprocessAudioPlayer(),
        cache=AudioCache(settings.audio_dir),
        error_status=error_status,
        slow_rate=settings.slow_playback_rate,
    )
    return SessionManager(
        chat_client=chat_client,
        conversation_db=JSONFileConversationDatabase(settings.conversations_dir),
        title_cache=TitleCache(chat_client, JSONFileTitleDatabase(settings.titles_path), error_status),
        audio_pipeline=audio_pipeline,
        speech=speech,
        error_status=error_status,
        language=settings.language,
    )
