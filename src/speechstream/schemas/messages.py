"""WebSocket message shapes exchanged with the client."""

from __future__ import annotations

import base64
import json
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ERROR_MESSAGES, FormatError

# Non-final audio chunks do not know the turn's total yet.
PLACEHOLDER_TOTAL_CHUNKS = -1


class ClientMessage(BaseModel):
    """Inbound frame: either a user ``text`` or ``action == "stop"``."""

    text: Optional[str] = None
    action: Optional[Literal["stop"]] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_stop(self) -> bool:
        return self.action == "stop"


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """Parse and validate one inbound frame.

    Raises:
        FormatError: when the frame is not a JSON object, fails validation,
            or carries neither a non-empty ``text`` nor a stop action.
    """

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise FormatError(ERROR_MESSAGES.INVALID_MESSAGE_FORMAT) from exc
    if not isinstance(payload, dict):
        raise FormatError(ERROR_MESSAGES.INVALID_MESSAGE_FORMAT)

    try:
        message = ClientMessage.model_validate(payload)
    except ValidationError as exc:
        raise FormatError(ERROR_MESSAGES.INVALID_MESSAGE_FORMAT) from exc

    if message.is_stop:
        return message
    if not message.text:
        raise FormatError(ERROR_MESSAGES.INVALID_MESSAGE_TEXT)
    return message


class ServerMessage(BaseModel):
    """Outbound frame. Unset fields are omitted on the wire."""

    type: Literal["text", "error", "audio-chunk"]
    data: Optional[str] = None
    error: Optional[str] = None
    audio: Optional[str] = None
    paragraph: Optional[str] = None
    chunk_index: Optional[int] = Field(default=None, alias="chunkIndex")
    total_chunks: Optional[int] = Field(default=None, alias="totalChunks")
    is_last_chunk: Optional[bool] = Field(default=None, alias="isLastChunk")

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def text_response(full_text: str, paragraph: str) -> ServerMessage:
    return ServerMessage(type="text", data=full_text, paragraph=paragraph)


def audio_chunk_response(
    audio: bytes, paragraph: str, chunk_index: int
) -> ServerMessage:
    return ServerMessage(
        type="audio-chunk",
        audio=base64.b64encode(audio).decode("utf-8"),
        paragraph=paragraph,
        chunk_index=chunk_index,
        total_chunks=PLACEHOLDER_TOTAL_CHUNKS,
        is_last_chunk=False,
    )


def final_audio_chunk_response(chunk_index: int, total_chunks: int) -> ServerMessage:
    return ServerMessage(
        type="audio-chunk",
        chunk_index=chunk_index,
        total_chunks=total_chunks,
        is_last_chunk=True,
    )


def stop_response() -> ServerMessage:
    return ServerMessage(type="text", data="")


def error_response(message: str) -> ServerMessage:
    return ServerMessage(type="error", error=message)


__all__ = [
    "PLACEHOLDER_TOTAL_CHUNKS",
    "ClientMessage",
    "ServerMessage",
    "audio_chunk_response",
    "error_response",
    "final_audio_chunk_response",
    "parse_client_message",
    "stop_response",
    "text_response",
]
