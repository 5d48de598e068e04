"""
Message data model.

A 'Message' is one turn of a conversation. Its content is append-only while a
response is streaming into it and frozen once the message is sealed. Messages
loaded from storage or created from user input are sealed from the start;
only the assistant placeholder that a stream fills in starts open. The
'sealed' flag is runtime state and is never persisted.

'audio_filename' is derived from the identity alone, so the audio cache entry
for a message can never refer to different spoken content.
"""

from pydantic import BaseModel, Field, computed_field

from language_tutor.llms.base import Roles
from language_tutor.utils.database import generate_uid


class SealedMessageError(RuntimeError):
    """Content was appended to a message that is already sealed."""


class Message(BaseModel):
    """A single turn within a conversation."""

    id: str = Field(default_factory=generate_uid)
    role: Roles
    content: str = ""
    sealed: bool = Field(default=True, exclude=True)

    @classmethod
    def placeholder(cls, role: Roles = Roles.ASSISTANT) -> "Message":
        """An empty, open message for a streamed model turn to fill in."""
        return cls(role=role, content="", sealed=False)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def audio_filename(self) -> str:
        return f"{self.id}.mp3"

    def append_content(self, delta: str) -> None:
        if self.sealed:
            raise SealedMessageError(f"Message {self.id} is sealed")
        self.content += delta

    def seal(self) -> None:
        self.sealed = True
