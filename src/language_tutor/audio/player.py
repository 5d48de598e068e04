"""
Audio playback.

'AudioPlayer.play' starts playing a file at a given rate and returns once
playback has started; it does not wait for the audio to finish. Starting a new
playback stops the previous one. The rate is fixed when playback starts, so
changing the pipeline's speed never affects audio that is already playing.

'SubprocessAudioPlayer' hands the file to an external command-line player.
The default command is 'ffplay' with an 'atempo' filter, which changes speed
without changing pitch.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from language_tutor.errors import LocalIOError

DEFAULT_PLAYER_COMMAND = ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", "-af", "atempo={rate}", "{path}")


class PlaybackError(LocalIOError):
    """The audio file could not be played."""


class AudioPlayer(ABC):
    @abstractmethod
    async def play(self, path: Path, rate: float) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass


class SubprocessAudioPlayer(AudioPlayer):
    """
    Plays audio by spawning a command-line player.

    Attributes:
        command: Argument template; '{path}' and '{rate}' are substituted in
            every argument.
    """

    def __init__(self, command: Sequence[str] = DEFAULT_PLAYER_COMMAND) -> None:
        self.command = tuple(command)
        self._process: asyncio.subprocess.Process | None = None

    def _arguments(self, path: Path, rate: float) -> list[str]:
        return [argument.format(path=str(path), rate=f"{rate:g}") for argument in self.command]

    async def play(self, path: Path, rate: float) -> None:
        await self.stop()
        arguments = self._arguments(path, rate)
        try:
            self._process = await asyncio.create_subprocess_exec(
                *arguments, stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.DEVNULL
            )
        except OSError as exc:
            raise PlaybackError(f"Could not start {arguments[0]!r}: {exc}") from exc
        logger.debug(f"Playing {path.name} at rate {rate:g} (pid {self._process.pid})")

    async def stop(self) -> None:
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        await process.wait()
