"""
OpenAI chat-completions backend.

'OpenAILLM' talks to any OpenAI-compatible '/chat/completions' endpoint through
the official 'openai' SDK. Non-streamed calls use the parsed SDK response and
take the first choice. Streamed calls read the raw server-sent-event lines so
that each frame is decoded on its own. Only the choice delta and finish reason
are read, so compatible servers that omit chunk metadata still stream. A frame
that fails to parse is logged and skipped without aborting the stream. Either
'[DONE]' or a frame carrying a 'finish_reason' ends the stream.

The SDK client is created with 'max_retries=0'; retry policy belongs to the
caller. Transport failures are classified here, once, via
'classify_transport_error'.
"""

from collections.abc import AsyncGenerator

from loguru import logger
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from language_tutor.errors import TRANSPORT_ERRORS, ChatClientError, ErrorKind, classify_transport_error
from language_tutor.llms.base import LLM, LLMMessage, Roles

_DATA_PREFIX = "data:"
_DONE_MARKER = "[DONE]"


class _FrameDelta(BaseModel):
    content: str | None = None


class _FrameChoice(BaseModel):
    delta: _FrameDelta = Field(default_factory=_FrameDelta)
    finish_reason: str | None = None


class _StreamFrame(BaseModel):
    """The part of a chat-completion chunk the assembler needs; other fields are ignored."""

    choices: list[_FrameChoice] = Field(default_factory=list)


def parse_stream_frame(line: str) -> tuple[str, bool]:
    """Decode one server-sent-event line into '(content_delta, is_terminal)'.

    Blank lines, comments and non-data fields carry no content. Unparseable
    data frames are logged and treated as empty.
    """
    line = line.strip()
    if not line.startswith(_DATA_PREFIX):
        return "", False
    data = line[len(_DATA_PREFIX) :].strip()
    if data == _DONE_MARKER:
        return "", True
    try:
        chunk = _StreamFrame.model_validate_json(data)
    except ValidationError:
        logger.warning(f"Skipping unparseable stream frame: {data!r}")
        return "", False
    if not chunk.choices:
        return "", False
    choice = chunk.choices[0]
    return choice.delta.content or "", choice.finish_reason is not None


class OpenAILLM(LLM):
    """
    'LLM' backed by the OpenAI chat completions API.

    Attributes:
        model_name: Model identifier sent with every request.
        temperature: Sampling temperature.
        seed: Optional sampling seed for reproducible answers.
        client: The 'AsyncOpenAI' client. Pass one in to share a connection
            pool or to substitute a mock transport in tests.
    """

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        temperature: float = 0.5,
        seed: int | None = None,
        openai_api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model_name = model_name
        self.temperature = temperature
        self.seed = seed
        self.client = client or AsyncOpenAI(
            api_key=openai_api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def _request_kwargs(self, conversation: list[LLMMessage]) -> dict:
        kwargs = {
            "model": self.model_name,
            "messages": [{"role": message.role.value, "content": message.content} for message in conversation],
            "temperature": self.temperature,
        }
        if self.seed is not None:
            kwargs["seed"] = self.seed
        return kwargs

    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        try:
            completion = await self.client.chat.completions.create(**self._request_kwargs(conversation))
        except TRANSPORT_ERRORS as exc:
            raise classify_transport_error(exc) from exc

        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise ChatClientError(ErrorKind.MALFORMED_RESPONSE, "Completion carried no choices") from exc
        if content is None:
            raise ChatClientError(ErrorKind.MALFORMED_RESPONSE, "First choice carried no content")
        return LLMMessage(role=Roles.ASSISTANT, content=content)

    async def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        try:
            async with self.client.chat.completions.with_streaming_response.create(
                **self._request_kwargs(conversation), stream=True
            ) as response:
                async for line in response.iter_lines():
                    delta, is_terminal = parse_stream_frame(line)
                    if delta:
                        yield LLMMessage(role=Roles.ASSISTANT, content=delta)
                    if is_terminal:
                        return
        except TRANSPORT_ERRORS as exc:
            raise classify_transport_error(exc) from exc
        logger.warning(f"Stream from {self.model_name} ended without a terminal marker")
