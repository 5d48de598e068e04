"""
Streaming response assembler.

'StreamingResponseAssembler' drives one in-flight assistant 'Message' through
a two-state machine: OPEN while content deltas are arriving and SEALED once the
stream has ended, either normally or with an error. The transition happens
exactly once. Deltas are appended verbatim and in arrival order; after each
one the 'on_update' hook fires so observers can render the growing text.

On error the assembler seals the message and re-raises. Whether the partial
message stays in the conversation is decided by the caller, which can inspect
'deltas_applied'.
"""

from collections.abc import AsyncIterable, Callable
from enum import StrEnum

from loguru import logger

from language_tutor.conversation_database.data_models.message import Message
from language_tutor.errors import ChatClientError


class AssemblerState(StrEnum):
    OPEN = "open"
    SEALED = "sealed"


class StreamingResponseAssembler:
    """Applies a stream of content deltas to a single open message."""

    def __init__(self, message: Message, on_update: Callable[[Message], None] | None = None) -> None:
        if message.sealed:
            raise ValueError(f"Message {message.id} is already sealed")
        self.message = message
        self.on_update = on_update
        self.deltas_applied = 0
        self.error: ChatClientError | None = None

    @property
    def state(self) -> AssemblerState:
        return AssemblerState.SEALED if self.message.sealed else AssemblerState.OPEN

    def apply(self, delta: str) -> None:
        self.message.append_content(delta)
        self.deltas_applied += 1
        if self.on_update is not None:
            self.on_update(self.message)

    def finish(self) -> None:
        self.message.seal()

    def fail(self, error: ChatClientError) -> None:
        self.error = error
        self.message.seal()

    async def consume(self, stream: AsyncIterable[str]) -> Message:
        """Apply every delta from 'stream' and seal the message.

        Returns the sealed message, or raises the stream's 'ChatClientError'
        after sealing. The message is sealed on every exit path, including an
        exception raised by 'on_update' or cancellation.
        """
        try:
            async for delta in stream:
                self.apply(delta)
        except ChatClientError as exc:
            logger.warning(f"Stream into message {self.message.id} failed after {self.deltas_applied} deltas: {exc}")
            self.fail(exc)
            raise
        finally:
            if not self.message.sealed:
                self.finish()
        return self.message
