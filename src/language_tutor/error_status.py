"""
User-facing error status.

'ErrorStatus' reduces classified failures to the two flags the client shows:
offline and upstream-down. Any success anywhere clears both. Malformed
responses and local I/O failures deliberately set no flag: they are transient
or not actionable by the user, and are only logged. Observers subscribe to be
called after every change.
"""

from collections.abc import Callable

from loguru import logger

from language_tutor.errors import ChatClientError, ErrorKind

StatusListener = Callable[["ErrorStatus"], None]


class ErrorStatus:
    def __init__(self) -> None:
        self.is_offline = False
        self.upstream_down = False
        self._listeners: list[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register 'listener'; the returned callable unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(f"Error status listener {listener!r} failed")

    def something_wrong(self) -> bool:
        return self.is_offline or self.upstream_down

    def set_happy(self) -> None:
        if not self.something_wrong():
            return
        self.is_offline = False
        self.upstream_down = False
        self._notify()

    def set_from_error(self, error: ChatClientError) -> None:
        match error.kind:
            case ErrorKind.OFFLINE:
                logger.info("Error status: offline")
                self.is_offline = True
            case ErrorKind.UPSTREAM_UNAVAILABLE:
                logger.info("Error status: upstream unavailable")
                self.upstream_down = True
            case _:
                logger.debug(f"Error status unchanged for {error.kind}")
                return
        self._notify()
