"""
Role-parameterised chat client.

'ChatClient' is the single entry point the rest of the core uses to talk to
the chat model. A call names the target language and a 'ChatRole'; the client
prepends the matching system instruction to the history and forwards the
request to the 'LLM' configured for that role. There is one client type for
all roles: the advisor, extractor and titler differ only in instruction text
and model selection.
"""

from collections.abc import AsyncGenerator, Mapping, Sequence

from loguru import logger

from language_tutor.llms.base import LLM, LLMMessage, Roles
from language_tutor.prompts import ChatRole, system_instruction

Turn = tuple[Roles, str]


class ChatClient:
    """
    Sends chat requests for a given language and role.

    Attributes:
        llms: The backend used for each 'ChatRole'. Roles may share an
            instance, e.g. extractor and titler on a cheaper utility model.
    """

    def __init__(self, llms: Mapping[ChatRole, LLM]) -> None:
        missing = [role for role in ChatRole if role not in llms]
        if missing:
            raise ValueError(f"No LLM configured for roles: {', '.join(missing)}")
        self.llms = dict(llms)

    @classmethod
    def with_single_llm(cls, llm: LLM) -> "ChatClient":
        return cls({role: llm for role in ChatRole})

    def _build_conversation(self, language: str, role: ChatRole, history: Sequence[Turn]) -> list[LLMMessage]:
        if not history:
            raise ValueError("History must contain at least one turn")
        return [
            LLMMessage(role=Roles.SYSTEM, content=system_instruction(language, role)),
            *(LLMMessage(role=turn_role, content=text) for turn_role, text in history),
        ]

    async def complete_chat(self, language: str, role: ChatRole, history: Sequence[Turn]) -> str:
        """Return the first completion for 'history', or raise 'ChatClientError'."""
        conversation = self._build_conversation(language, role, history)
        llm = self.llms[role]
        logger.debug(f"complete_chat role={role} language={language} model={llm.model_name} turns={len(history)}")
        response = await llm.generate(conversation)
        return response.content

    async def stream_chat(
        self, language: str, role: ChatRole, history: Sequence[Turn]
    ) -> AsyncGenerator[str, None]:
        """Yield content deltas in arrival order.

        The generator finishing normally is the completion signal; a failure
        is raised as 'ChatClientError' from the iteration.
        """
        conversation = self._build_conversation(language, role, history)
        llm = self.llms[role]
        logger.debug(f"stream_chat role={role} language={language} model={llm.model_name} turns={len(history)}")
        async for chunk in llm.generate_stream(conversation):
            if chunk.content:
                yield chunk.content
