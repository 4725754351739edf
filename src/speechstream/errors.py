"""Error taxonomy shared by the streaming pipeline and the WebSocket layer."""

from __future__ import annotations

import asyncio
from typing import Any


class _Messages:
    INVALID_MESSAGE_FORMAT = "Invalid message format"
    INVALID_MESSAGE_TEXT = "Invalid message: text field is required"
    NO_RESPONSE_CONTENT = "No response content from OpenAI"
    TEXT_EMPTY = "Text is empty"
    ABORTED = "Aborted"
    UNKNOWN_CHAT_ERROR = "Unknown error in OpenAI Chat Completion"
    UNKNOWN_TTS_ERROR = "Unknown error in OpenAI TTS"
    UNKNOWN_ERROR = "Unknown error occurred"

    @staticmethod
    def tts_chunk_exceeds_limit(length: int, limit: int = 4096) -> str:
        return f"Text chunk exceeds TTS limit: {length} characters (max {limit})"

    @staticmethod
    def openai_chat_error(message: str) -> str:
        return f"OpenAI Chat Completion error: {message}"

    @staticmethod
    def openai_tts_error(message: str) -> str:
        return f"OpenAI TTS error: {message}"


ERROR_MESSAGES = _Messages()


class SpeechStreamError(Exception):
    """Base class for failures that may be reported to a client."""

    default_message = ERROR_MESSAGES.UNKNOWN_ERROR

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class FormatError(SpeechStreamError):
    """Inbound message is not valid JSON or lacks a required field."""

    default_message = ERROR_MESSAGES.INVALID_MESSAGE_FORMAT


class GenerationFailure(SpeechStreamError):
    """The text-generation backend failed."""

    default_message = ERROR_MESSAGES.UNKNOWN_CHAT_ERROR

    @classmethod
    def wrap(cls, exc: BaseException) -> "GenerationFailure":
        return cls(ERROR_MESSAGES.openai_chat_error(str(exc)))


class SynthesisFailure(SpeechStreamError):
    """The speech-synthesis backend failed or was given oversized input."""

    default_message = ERROR_MESSAGES.UNKNOWN_TTS_ERROR

    @classmethod
    def wrap(cls, exc: BaseException) -> "SynthesisFailure":
        return cls(ERROR_MESSAGES.openai_tts_error(str(exc)))


class EmptyResponse(SpeechStreamError):
    """Generation succeeded but produced no content."""

    default_message = ERROR_MESSAGES.NO_RESPONSE_CONTENT


class Aborted(SpeechStreamError):
    """A turn observed its cancellation token."""

    default_message = ERROR_MESSAGES.ABORTED


class UnknownError(SpeechStreamError):
    """Catch-all wrapper for exceptions outside the taxonomy."""

    default_message = ERROR_MESSAGES.UNKNOWN_ERROR


_ABORT_MARKERS = ("abort", "cancelled", "canceled")


def is_abort_error(error: BaseException) -> bool:
    """Return True when ``error`` represents cooperative cancellation."""

    if isinstance(error, (Aborted, asyncio.CancelledError)):
        return True
    if isinstance(error, SpeechStreamError):
        cause = error.__cause__
        return cause is not None and is_abort_error(cause)
    message = str(error).lower()
    return any(marker in message for marker in _ABORT_MARKERS)


def get_error_message(
    error: Any, default_message: str = ERROR_MESSAGES.UNKNOWN_ERROR
) -> str:
    if isinstance(error, SpeechStreamError):
        return error.message
    if isinstance(error, Exception) and str(error):
        return str(error)
    return default_message


__all__ = [
    "ERROR_MESSAGES",
    "Aborted",
    "EmptyResponse",
    "FormatError",
    "GenerationFailure",
    "SpeechStreamError",
    "SynthesisFailure",
    "UnknownError",
    "get_error_message",
    "is_abort_error",
]
