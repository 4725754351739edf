"""OpenAI chat completion client used as the text-generation backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

import httpx
import openai

from ..config import Settings
from ..errors import (
    Aborted,
    EmptyResponse,
    GenerationFailure,
    SpeechStreamError,
    is_abort_error,
)
from ..schemas.chat import ChatMessage
from .cancellation import CancellationToken
from .tts.text_splitter import is_response_complete

logger = logging.getLogger(__name__)

CONTINUATION_PROMPT = (
    "Please continue your previous response from where you left off. "
    "Complete your thought, but remember to conclude naturally before "
    "hitting the token limit."
)
STOP_NOTICE = (
    "\n\n[I stopped here to avoid overwhelming you with too much information. "
    "Would you like me to continue?]"
)


def build_openai_client(settings: Settings) -> openai.AsyncOpenAI:
    """Create an ``AsyncOpenAI`` client from application settings."""

    timeout = httpx.Timeout(settings.request_timeout, connect=10.0)
    return openai.AsyncOpenAI(
        api_key=settings.openai_api_key.get_secret_value(),
        base_url=str(settings.openai_base_url) if settings.openai_base_url else None,
        timeout=timeout,
    )


class ChatService:
    """Stream or fetch chat completions for a conversation history."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self._settings = settings
        self._client = client or build_openai_client(settings)

    @property
    def model(self) -> str:
        return self._settings.chat_model

    async def stream_completion(
        self,
        history: Sequence[ChatMessage],
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        """Yield text fragments for ``history`` as they arrive.

        Raises:
            Aborted: ``token`` was cancelled before or during the stream.
            GenerationFailure: the backend request failed.
        """
        token.raise_if_cancelled()
        messages = [turn.to_openai() for turn in history]

        try:
            stream = await self._client.chat.completions.create(
                model=self._settings.chat_model,
                messages=messages,
                max_tokens=self._settings.chat_max_tokens,
                stream=True,
            )
            async with stream:
                async for chunk in stream:
                    token.raise_if_cancelled()
                    if not chunk.choices:
                        continue
                    content = chunk.choices[0].delta.content
                    if content:
                        yield content
        except SpeechStreamError:
            raise
        except Exception as exc:
            if token.cancelled or is_abort_error(exc):
                raise Aborted() from exc
            logger.error(f"OpenAI streaming error: {exc}")
            raise GenerationFailure.wrap(exc) from exc

        token.raise_if_cancelled()

    async def complete(
        self, history: Sequence[ChatMessage]
    ) -> tuple[str, ChatMessage]:
        """Fetch a full response, continuing when it is cut off by length.

        Continuations are requested in a bounded loop, at most
        ``max_continuation_count`` times. When the bound is hit the fixed
        stop notice is appended instead.
        """
        messages = list(history)
        content = await self._request_once(messages)
        parts = [content.text.strip()]
        finish_reason = content.finish_reason
        continuations = 0

        while finish_reason == "length":
            if continuations >= self._settings.max_continuation_count:
                parts[-1] = parts[-1] + STOP_NOTICE
                break
            continuations += 1
            messages = [
                *messages,
                ChatMessage(role="assistant", content=" ".join(parts)),
                ChatMessage(role="user", content=CONTINUATION_PROMPT),
            ]
            try:
                continuation = await self._request_once(messages)
            except SpeechStreamError as exc:
                logger.warning(f"Continuation {continuations} failed: {exc.message}")
                parts[-1] = parts[-1] + STOP_NOTICE
                break
            parts.append(continuation.text.strip())
            finish_reason = continuation.finish_reason

        text = " ".join(parts)
        if not is_response_complete(text):
            logger.warning(
                "Response may still be incomplete (does not end with proper punctuation)."
            )
        return text, ChatMessage(role="assistant", content=text)

    async def _request_once(self, messages: Sequence[ChatMessage]) -> "_Completion":
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.chat_model,
                messages=[turn.to_openai() for turn in messages],
                max_tokens=self._settings.chat_max_tokens,
            )
        except Exception as exc:
            raise GenerationFailure.wrap(exc) from exc

        choice = response.choices[0] if response.choices else None
        text = choice.message.content if choice and choice.message else None
        if not text:
            raise EmptyResponse()
        return _Completion(text=text, finish_reason=choice.finish_reason)

    async def aclose(self) -> None:
        await self._client.close()


@dataclass(frozen=True)
class _Completion:
    text: str
    finish_reason: Optional[str]


__all__ = ["CONTINUATION_PROMPT", "STOP_NOTICE", "ChatService", "build_openai_client"]
