"""
Session-orchestration core of a language-learning chat client.

    from language_tutor import Settings, build_session_manager

    manager = build_session_manager(Settings.from_env())
    await manager.start()
    manager.input_text = "안녕하세요"
    await manager.send_message()
"""

from language_tutor.config import Settings
from language_tutor.error_status import ErrorStatus
from language_tutor.errors import ChatClientError, ErrorKind, LocalIOError, TutorError
from language_tutor.factory import build_session_manager
from language_tutor.session_manager import SessionManager

__version__ = "0.1.0"

__all__ = [
    "ChatClientError",
    "ErrorKind",
    "ErrorStatus",
    "LocalIOError",
    "SessionManager",
    "Settings",
    "TutorError",
    "build_session_manager",
]
