"""
Target-language audio: speech service boundary, cache, playback and the pipeline tying them together.
"""

from language_tutor.audio.cache import AudioCache
from language_tutor.audio.pipeline import AudioPipeline, PlaybackSpeed
from language_tutor.audio.player import AudioPlayer, PlaybackError, SubprocessAudioPlayer
from language_tutor.audio.speech import OpenAISpeechService, SpeechService

__all__ = [
    "AudioCache",
    "AudioPipeline",
    "AudioPlayer",
    "OpenAISpeechService",
    "PlaybackError",
    "PlaybackSpeed",
    "SpeechService",
    "SubprocessAudioPlayer",
]
