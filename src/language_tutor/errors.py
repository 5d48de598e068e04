"""
Error taxonomy and the single transport-failure classification point.

Every failure that crosses the network boundary is converted into a
'ChatClientError' carrying an 'ErrorKind' exactly once, inside the component
that performed the call ('OpenAILLM', 'OpenAISpeechService'). Layers above
only ever see the classified error and never re-wrap it. Local storage
failures are raised as 'LocalIOError' and are handled (logged, treated as a
cache-miss) by the component that performed the I/O.
"""

import errno
import json
import socket
from enum import StrEnum

import httpx
import openai


class ErrorKind(StrEnum):
    """Closed set of failure classifications known to the core."""

    OFFLINE = "offline"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    LOCAL_IO_FAILURE = "local_io_failure"


class TutorError(Exception):
    """Base class for every error raised by the core."""


class ChatClientError(TutorError):
    """A classified failure of a remote call (chat, synthesis or transcription)."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class LocalIOError(TutorError):
    """Reading or writing durable storage failed."""

    kind = ErrorKind.LOCAL_IO_FAILURE


class UnsupportedLanguageError(TutorError, ValueError):
    """The requested target language is not in the supported-language table."""


# Lower-cased fragments of transport error messages that mean "no connectivity".
_OFFLINE_SIGNATURES = (
    "offline",
    "network is unreachable",
    "no route to host",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "getaddrinfo failed",
)
_OFFLINE_ERRNOS = {errno.ENETUNREACH, errno.ENETDOWN, errno.EHOSTUNREACH}


def _exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def is_offline_error(exc: BaseException) -> bool:
    """Return True if any exception in the chain carries a known no-connectivity signature."""
    for error in _exception_chain(exc):
        if isinstance(error, socket.gaierror):
            return True
        if isinstance(error, OSError) and error.errno in _OFFLINE_ERRNOS:
            return True
        text = str(error).lower()
        if any(signature in text for signature in _OFFLINE_SIGNATURES):
            return True
        if "connection" in text and "lost" in text:
            return True
    return False


def classify_transport_error(exc: BaseException) -> ChatClientError:
    """Map a raw transport or decoding exception to a 'ChatClientError'.

    Response-shape failures become MALFORMED_RESPONSE, connectivity failures
    become OFFLINE, and everything else defaults to UPSTREAM_UNAVAILABLE.
    An already classified error is returned unchanged.
    """
    if isinstance(exc, ChatClientError):
        return exc
    if isinstance(exc, (openai.APIResponseValidationError, json.JSONDecodeError, httpx.DecodingError)):
        return ChatClientError(ErrorKind.MALFORMED_RESPONSE, f"Response could not be decoded: {exc}")
    if isinstance(exc, openai.APIStatusError):
        return ChatClientError(ErrorKind.UPSTREAM_UNAVAILABLE, f"Upstream returned HTTP {exc.status_code}")
    if is_offline_error(exc):
        return ChatClientError(ErrorKind.OFFLINE, f"No connectivity: {exc}")
    return ChatClientError(ErrorKind.UPSTREAM_UNAVAILABLE, f"Upstream unavailable: {exc}")


# Exceptions that 'classify_transport_error' is meant to receive. Anything else is a bug and propagates.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    openai.APIError,
    httpx.HTTPError,
    httpx.StreamError,
    json.JSONDecodeError,
    OSError,
)
