"""
Durable audio cache.

One mp3 file per message, named by 'Message.audio_filename'. The existence of
a non-empty file is the only cache-hit signal; there is no freshness metadata
because a message's content is sealed before any audio is produced for it.
Read problems are logged and reported as a miss. Files are written atomically,
so an interrupted write never leaves a partial entry behind.
"""

import asyncio
from pathlib import Path

from loguru import logger

from language_tutor.conversation_database.data_models.message import Message
from language_tutor.errors import LocalIOError
from language_tutor.utils.files import atomic_write_bytes


class AudioCache:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, message: Message) -> Path:
        return self.directory / message.audio_filename

    def _is_hit(self, path: Path) -> bool:
        try:
            return path.is_file() and path.stat().st_size > 0
        except OSError as exc:
            logger.warning(f"Treating unreadable audio cache entry {path.name} as a miss: {exc}")
            return False

    async def lookup(self, message: Message) -> Path | None:
        path = self.path_for(message)
        return path if await asyncio.to_thread(self._is_hit, path) else None

    async def store(self, message: Message, audio: bytes) -> Path:
        path = self.path_for(message)
        try:
            await asyncio.to_thread(atomic_write_bytes, path, audio)
        except OSError as exc:
            raise LocalIOError(f"Could not write audio for message {message.id}: {exc}") from exc
        logger.debug(f"Cached {len(audio)} bytes of audio at {path}")
        return path
