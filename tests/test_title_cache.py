import asyncio

import pytest

from language_tutor.conversation_database.data_models.conversation import DEFAULT_CONVERSATION_TITLE, Conversation
from language_tutor.conversation_database.data_models.message import Message
from language_tutor.conversation_database.in_memory import InMemoryTitleDatabase
from language_tutor.errors import ChatClientError, ErrorKind, LocalIOError
from language_tutor.llms.base import Roles
from language_tutor.title_cache import TitleCache, clean_title


def _conversation() -> Conversation:
    conversation = Conversation(language="Korean")
    conversation.append(Message(role=Roles.USER, content="How do I order coffee?"))
    conversation.append(Message(role=Roles.ASSISTANT, content="커피 주세요."))
    return conversation


class FailingTitleDatabase(InMemoryTitleDatabase):
    async def load_titles(self):
        raise LocalIOError("disk gone")

    async def save_titles(self, titles):
        raise LocalIOError("disk gone")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('"Ordering coffee"', "Ordering coffee"),
        ("  'Ordering coffee'\n", "Ordering coffee"),
        ("“커피 주문”", "커피 주문"),
        ("「コーヒー」", "コーヒー"),
        ("Plain title", "Plain title"),
    ],
)
def test_clean_title_strips_wrapping_quotes(raw, expected):
    assert clean_title(raw) == expected


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_request(title_cache, utility, title_db):
    utility.replies = ['"Ordering coffee"']
    utility.gate = asyncio.Event()
    conversation = _conversation()

    callers = [asyncio.create_task(title_cache.get_or_generate_title(conversation)) for _ in range(5)]
    await asyncio.sleep(0)
    assert title_cache.is_generating(conversation.id)
    utility.gate.set()
    titles = await asyncio.gather(*callers)

    assert titles == ["Ordering coffee"] * 5
    assert len(utility.generate_calls) == 1
    assert not title_cache.is_generating(conversation.id)
    assert title_db.titles == {conversation.id: "Ordering coffee"}


@pytest.mark.asyncio
async def test_memoised_title_is_returned_without_a_request(title_cache, utility):
    conversation = _conversation()
    utility.replies = ["Coffee"]
    assert await title_cache.get_or_generate_title(conversation) == "Coffee"
    assert await title_cache.get_or_generate_title(conversation) == "Coffee"

    assert len(utility.generate_calls) == 1


@pytest.mark.asyncio
async def test_pristine_conversation_gets_default_title(title_cache, utility):
    assert await title_cache.get_or_generate_title(Conversation()) == DEFAULT_CONVERSATION_TITLE
    assert utility.generate_calls == []


@pytest.mark.asyncio
async def test_failure_is_not_memoised_and_next_call_retries(title_cache, utility):
    conversation = _conversation()
    utility.replies = [ChatClientError(ErrorKind.OFFLINE), "Coffee"]

    assert await title_cache.get_or_generate_title(conversation) == DEFAULT_CONVERSATION_TITLE
    assert title_cache.get(conversation.id) is None
    assert await title_cache.get_or_generate_title(conversation) == "Coffee"
    assert len(utility.generate_calls) == 2


@pytest.mark.asyncio
async def test_empty_title_is_not_memoised(title_cache, utility):
    conversation = _conversation()
    utility.replies = ['  ""  ']

    assert await title_cache.get_or_generate_title(conversation) == DEFAULT_CONVERSATION_TITLE
    assert title_cache.get(conversation.id) is None


@pytest.mark.asyncio
async def test_titler_receives_conversation_history(title_cache, utility):
    conversation = _conversation()
    await title_cache.get_or_generate_title(conversation)

    sent = utility.generate_calls[0]
    assert sent[0].role == Roles.SYSTEM
    assert "title" in sent[0].content.lower()
    assert [(m.role, m.content) for m in sent[1:]] == conversation.turns()


@pytest.mark.asyncio
async def test_load_and_forget(chat_client):
    title_db = InMemoryTitleDatabase({"a": "Greetings", "b": "Weather"})
    cache = TitleCache(chat_client, title_db)
    await cache.load()
    assert cache.get("a") == "Greetings"

    await cache.forget("a")
    assert cache.get("a") is None
    assert title_db.titles == {"b": "Weather"}


@pytest.mark.asyncio
async def test_storage_failures_do_not_break_generation(chat_client, utility):
    cache = TitleCache(chat_client, FailingTitleDatabase())
    await cache.load()
    assert cache.titles == {}

    utility.replies = ["Coffee"]
    conversation = _conversation()
    assert await cache.get_or_generate_title(conversation) == "Coffee"
    assert cache.get(conversation.id) == "Coffee"


@pytest.mark.asyncio
async def test_successful_generation_clears_error_flags(title_cache, utility, error_status):
    error_status.set_from_error(ChatClientError(ErrorKind.OFFLINE))
    utility.replies = [ChatClientError(ErrorKind.OFFLINE), "Coffee"]
    conversation = _conversation()

    await title_cache.get_or_generate_title(conversation)
    assert error_status.is_offline

    await title_cache.get_or_generate_title(conversation)
    assert not error_status.something_wrong()
