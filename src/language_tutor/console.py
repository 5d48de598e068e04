"""
Line-oriented console driver.

A thin front end for trying the session manager from a terminal. It only
dispatches commands; all behaviour lives in 'SessionManager'.

Usage:
    OPENAI_API_KEY=... python -m language_tutor
    LANGUAGE_TUTOR_LANGUAGE=Japanese language-tutor

Commands:
    /new          start (or reuse) an empty conversation
    /list         list conversations, most recent first
    /open N       switch to conversation N from /list
    /hear [N]     play message N of the active conversation (default: last reply)
    /slow         toggle slow playback
    /lang NAME    target language for new conversations
    /quit         exit
Anything else is sent as a message; the reply is streamed to stdout.
"""

import asyncio

from language_tutor.config import Settings
from language_tutor.errors import UnsupportedLanguageError
from language_tutor.factory import build_session_manager
from language_tutor.llms.base import Roles
from language_tutor.logging_config import configure_logging
from language_tutor.session_manager import SessionManager


class ConsoleView:
    """Prints streamed reply text as the session manager reports changes."""

    def __init__(self) -> None:
        self.printed: dict[str, int] = {}

    def __call__(self, manager: SessionManager) -> None:
        conversation = manager.conversations.get(manager.active_conversation_id or "")
        if conversation is None or not conversation.messages:
            return
        message = conversation.messages[-1]
        if message.role != Roles.ASSISTANT:
            return
        already = self.printed.get(message.id, 0)
        if len(message.content) > already:
            print(message.content[already:], end="", flush=True)
            self.printed[message.id] = len(message.content)


def _status_line(manager: SessionManager) -> str | None:
    status = manager.error_status
    if status.is_offline:
        return "[offline: check your connection and resend]"
    if status.upstream_down:
        return "[the language model is unavailable right now: try again later]"
    return None


async def _hear(manager: SessionManager, argument: str) -> None:
    messages = manager.active_conversation.messages
    if argument:
        index = int(argument) - 1
    else:
        index = max((i for i, m in enumerate(messages) if m.role == Roles.ASSISTANT), default=-1)
    if not 0 <= index < len(messages):
        print("No such message.")
        return
    played = await manager.hear(
        messages[index].id, on_loading=lambda loading: print("[loading audio…]") if loading else None
    )
    if not played:
        print("[no audio]")


async def _handle_command(manager: SessionManager, line: str) -> bool:
    command, _, argument = line.partition(" ")
    argument = argument.strip()
    match command:
        case "/quit":
            return False
        case "/new":
            manager.add_conversation()
            print("New conversation.")
        case "/list":
            for number, conversation in enumerate(manager.ordered_conversations(), start=1):
                marker = "*" if conversation.id == manager.active_conversation_id else " "
                print(f"{marker}{number:>3}  {conversation.title}  ({len(conversation.messages)} messages)")
        case "/open":
            conversations = manager.ordered_conversations()
            index = int(argument) - 1 if argument.isdigit() else -1
            if not 0 <= index < len(conversations):
                print("No such conversation.")
            else:
                for message in manager.select_conversation(conversations[index].id).messages:
                    print(f"{message.role}: {message.content}")
        case "/hear":
            await _hear(manager, argument)
        case "/slow":
            print(f"Playback speed: {manager.toggle_slow_mode()}")
        case "/lang":
            try:
                manager.set_language(argument)
                print(f"Language: {manager.language}")
            except UnsupportedLanguageError as exc:
                print(exc)
        case _:
            print(f"Unknown command {command!r}")
    return True


async def run(settings: Settings) -> None:
    manager = build_session_manager(settings)
    await manager.start()
    manager.subscribe(ConsoleView())
    print(f"Practising {manager.language}. Type /quit to exit.")
    try:
        while True:
            line = (await asyncio.to_thread(input, "> ")).strip()
            if line.startswith("/"):
                if not await _handle_command(manager, line):
                    break
                continue
            manager.input_text = line
            await manager.send_message()
            print()
            status = _status_line(manager)
            if status:
                print(status)
    except (EOFError, KeyboardInterrupt):
        print()
    finally:
        await manager.aclose()


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
