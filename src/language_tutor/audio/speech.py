"""
Speech synthesis and transcription boundary.

'SpeechService' is the black-box text-to-audio and audio-to-text interface the
core depends on. 'OpenAISpeechService' implements it with the OpenAI audio
endpoints. Like the chat backends it performs no retries and raises only
classified 'ChatClientError's.
"""

from abc import ABC, abstractmethod

from loguru import logger
from openai import AsyncOpenAI

from language_tutor.errors import TRANSPORT_ERRORS, ChatClientError, ErrorKind, classify_transport_error


class SpeechService(ABC):
    """Abstract text-to-speech and speech-to-text service."""

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """Return encoded audio (mp3) speaking 'text'."""
        pass

    @abstractmethod
    async def transcribe(self, audio: bytes, filename: str = "recording.m4a") -> str:
        """Return the transcript of 'audio'. 'filename' tells the service the container format."""
        pass


class OpenAISpeechService(SpeechService):
    def __init__(
        self,
        speech_model: str = "tts-1",
        voice: str = "alloy",
        transcription_model: str = "whisper-1",
        openai_api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.speech_model = speech_model
        self.voice = voice
        self.transcription_model = transcription_model
        self.client = client or AsyncOpenAI(api_key=openai_api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def synthesize(self, text: str) -> bytes:
        logger.debug(f"Synthesising {len(text)} characters with {self.speech_model}/{self.voice}")
        try:
            response = await self.client.audio.speech.create(
                model=self.speech_model, voice=self.voice, input=text, response_format="mp3"
            )
            audio = await response.aread()
        except TRANSPORT_ERRORS as exc:
            raise classify_transport_error(exc) from exc
        if not audio:
            raise ChatClientError(ErrorKind.MALFORMED_RESPONSE, "Speech synthesis returned no audio")
        return audio

    async def transcribe(self, audio: bytes, filename: str = "recording.m4a") -> str:
        logger.debug(f"Transcribing {len(audio)} bytes with {self.transcription_model}")
        try:
            transcription = await self.client.audio.transcriptions.create(
                model=self.transcription_model, file=(filename, audio)
            )
        except TRANSPORT_ERRORS as exc:
            raise classify_transport_error(exc) from exc
        text = getattr(transcription, "text", None)
        if not isinstance(text, str):
            raise ChatClientError(ErrorKind.MALFORMED_RESPONSE, "Transcription carried no text")
        return text
