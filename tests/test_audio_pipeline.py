import asyncio

import pytest

from language_tutor.audio.pipeline import PlaybackSpeed
from language_tutor.conversation_database.data_models.message import Message
from language_tutor.errors import ChatClientError, ErrorKind
from language_tutor.llms.base import Roles
from language_tutor.prompts import NO_TARGET_LANGUAGE_TEXT


def _reply() -> Message:
    return Message(role=Roles.ASSISTANT, content="커피 주세요. (Coffee, please.)")


async def _until(condition) -> None:
    while not condition():
        await asyncio.sleep(0.01)


class LoadingRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, loading: bool) -> None:
        self.events.append(loading)


@pytest.mark.asyncio
async def test_miss_extracts_synthesises_caches_and_plays(audio_pipeline, utility, speech, player):
    utility.replies = ["커피 주세요."]
    message = _reply()
    loading = LoadingRecorder()

    assert await audio_pipeline.play(message, "Korean", on_loading=loading)

    assert speech.synthesize_calls == ["커피 주세요."]
    cached = audio_pipeline.cache.path_for(message)
    assert cached.read_bytes() == speech.audio
    assert player.played == [(cached, 1.0)]
    assert loading.events == [True, False]


@pytest.mark.asyncio
async def test_extractor_receives_message_content(audio_pipeline, utility):
    utility.replies = ["커피 주세요."]
    message = _reply()
    await audio_pipeline.play(message, "Korean")

    sent = utility.generate_calls[0]
    assert sent[0].role == Roles.SYSTEM
    assert NO_TARGET_LANGUAGE_TEXT in sent[0].content
    assert (sent[1].role, sent[1].content) == (Roles.USER, message.content)


@pytest.mark.asyncio
async def test_second_play_is_served_from_cache(audio_pipeline, utility, speech, player):
    utility.replies = ["커피 주세요."]
    message = _reply()
    await audio_pipeline.play(message, "Korean")
    loading = LoadingRecorder()

    assert await audio_pipeline.play(message, "Korean", on_loading=loading)

    assert len(utility.generate_calls) == 1
    assert len(speech.synthesize_calls) == 1
    assert len(player.played) == 2
    assert loading.events == []


@pytest.mark.asyncio
async def test_concurrent_plays_share_one_production(audio_pipeline, utility, speech, player):
    utility.replies = ["커피 주세요."]
    speech.gate = asyncio.Event()
    message = _reply()
    first, second = LoadingRecorder(), LoadingRecorder()

    calls = [
        asyncio.create_task(audio_pipeline.play(message, "Korean", on_loading=first)),
        asyncio.create_task(audio_pipeline.play(message, "Korean", on_loading=second)),
    ]
    await asyncio.wait_for(_until(lambda: speech.synthesize_calls and first.events and second.events), timeout=5)
    speech.gate.set()
    results = await asyncio.gather(*calls)

    assert results == [True, True]
    assert len(utility.generate_calls) == 1
    assert len(speech.synthesize_calls) == 1
    assert len(player.played) == 1
    assert first.events == [True, False]
    assert second.events == [True, False]


@pytest.mark.asyncio
async def test_no_target_language_text_produces_no_audio(audio_pipeline, utility, speech, player, error_status):
    utility.replies = [NO_TARGET_LANGUAGE_TEXT]
    message = _reply()
    loading = LoadingRecorder()

    assert not await audio_pipeline.play(message, "Korean", on_loading=loading)

    assert speech.synthesize_calls == []
    assert player.played == []
    assert not audio_pipeline.cache.path_for(message).exists()
    assert not error_status.something_wrong()
    assert loading.events == [True, False]


@pytest.mark.asyncio
async def test_synthesis_failure_leaves_no_cache_entry_and_retries_later(
    audio_pipeline, utility, speech, player, error_status
):
    utility.replies = ["커피 주세요.", "커피 주세요."]
    speech.error = ChatClientError(ErrorKind.UPSTREAM_UNAVAILABLE)
    message = _reply()

    assert not await audio_pipeline.play(message, "Korean")
    assert not audio_pipeline.cache.path_for(message).exists()
    assert error_status.upstream_down
    assert player.played == []

    speech.error = None
    assert await audio_pipeline.play(message, "Korean")
    assert not error_status.something_wrong()
    assert len(speech.synthesize_calls) == 2


@pytest.mark.asyncio
async def test_extraction_failure_sets_offline(audio_pipeline, utility, speech, error_status):
    utility.replies = [ChatClientError(ErrorKind.OFFLINE)]

    assert not await audio_pipeline.play(_reply(), "Korean")

    assert error_status.is_offline
    assert speech.synthesize_calls == []


@pytest.mark.asyncio
async def test_slow_mode_changes_rate_without_invalidating_cache(audio_pipeline, utility, speech, player):
    utility.replies = ["커피 주세요."]
    message = _reply()
    await audio_pipeline.play(message, "Korean")

    assert audio_pipeline.toggle_slow_mode() == PlaybackSpeed.SLOW
    await audio_pipeline.play(message, "Korean")
    audio_pipeline.set_speed(PlaybackSpeed.NORMAL)
    await audio_pipeline.play(message, "Korean")

    assert [rate for _, rate in player.played] == [1.0, 0.7, 1.0]
    assert len(speech.synthesize_calls) == 1


@pytest.mark.asyncio
async def test_playback_failure_keeps_cached_audio(audio_pipeline, utility, player):
    utility.replies = ["커피 주세요."]
    player.fail = True
    message = _reply()

    assert not await audio_pipeline.play(message, "Korean")
    assert audio_pipeline.cache.path_for(message).exists()


@pytest.mark.asyncio
async def test_empty_cache_file_counts_as_miss(audio_pipeline, utility, speech):
    message = _reply()
    path = audio_pipeline.cache.path_for(message)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"")
    utility.replies = ["커피 주세요."]

    assert await audio_pipeline.play(message, "Korean")
    assert len(speech.synthesize_calls) == 1
    assert path.read_bytes() == speech.audio
