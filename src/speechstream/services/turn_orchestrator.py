"""
Turn Orchestrator for the Sentence-by-Sentence Speech Pipeline.

This module drives one conversational turn: it streams the LLM response,
segments it into sentences, re-splits each sentence against the synthesis
length ceiling, synthesizes audio for every piece and hands ordered output
to the connection.

Architecture:
    ChatService.stream_completion() → SentenceSegmenter.feed()
        → split_text() → TTSService.synthesize() → TurnOutput

Ordering guarantees:
- Sentences are processed strictly one at a time, each awaited to completion
  before the next fragment is pulled from the LLM stream.
- For every piece, the text output precedes its audio output.
- Audio outputs carry a strictly increasing sequence index.
- The final marker, if any, is the last output of the turn.

Cancellation is cooperative. The token is polled before and after every
suspension point; a piece already being synthesized is allowed to finish,
but its result is discarded once cancellation has been observed.

Usage:
    orchestrator = TurnOrchestrator(chat_service, tts_service, output)
    full_text = await orchestrator.run(history, token)
"""

import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence, TYPE_CHECKING

from speechstream.errors import (
    Aborted,
    EmptyResponse,
    SpeechStreamError,
    UnknownError,
    get_error_message,
    is_abort_error,
)
from speechstream.schemas.chat import ChatMessage
from speechstream.services.cancellation import CancellationToken
from speechstream.services.tts.text_segmenter import SentenceSegmenter
from speechstream.services.tts.text_splitter import DEFAULT_MAX_LENGTH, split_text

if TYPE_CHECKING:
    from speechstream.services.chat_service import ChatService
    from speechstream.services.tts_service import TTSService

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class OutputChunk:
    """One synthesized piece of a turn, or the terminal marker."""

    text: str
    audio: bytes
    sequence_index: int
    is_final: bool = False
    total_chunks: Optional[int] = None


class TurnOutput(Protocol):
    """Destination for a turn's ordered output events."""

    async def send_text(self, full_text: str, paragraph: str) -> None: ...

    async def send_audio(self, chunk: OutputChunk) -> None: ...

    async def send_final(self, chunk: OutputChunk) -> None: ...


class TurnOrchestrator:
    """
    Coordinates generation, segmentation and synthesis for a single turn.

    An instance is single-use: :meth:`run` may be awaited once.

    Attributes:
        chat_service: Text-generation backend
        tts_service: Speech-synthesis backend
        output: Sink receiving text, audio and final-marker events
        max_chunk_length: Ceiling each synthesized piece must respect
    """

    def __init__(
        self,
        chat_service: "ChatService",
        tts_service: "TTSService",
        output: TurnOutput,
        *,
        max_chunk_length: int = DEFAULT_MAX_LENGTH,
        flush_threshold: int = SentenceSegmenter.DEFAULT_FLUSH_THRESHOLD,
    ):
        self.chat_service = chat_service
        self.tts_service = tts_service
        self.output = output
        self.max_chunk_length = max_chunk_length
        self._segmenter = SentenceSegmenter(flush_threshold=flush_threshold)
        self._sequence_index = 0
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def chunks_sent(self) -> int:
        return self._sequence_index

    async def run(
        self,
        history: Sequence[ChatMessage],
        token: CancellationToken,
    ) -> str:
        """
        Run the turn to completion and return the full response text.

        Raises:
            Aborted: the token was cancelled; no partial text is returned.
            GenerationFailure: the LLM backend failed.
            EmptyResponse: the LLM stream produced no content.
            UnknownError: any other unexpected failure.
        """
        if self._state is not TurnState.IDLE:
            raise RuntimeError("TurnOrchestrator.run() may only be called once")

        start_time = time.monotonic()
        self._state = TurnState.STREAMING

        try:
            # Closed on exit so an aborted turn releases the HTTP stream at once
            async with aclosing(self.chat_service.stream_completion(history, token)) as stream:
                async for fragment in stream:
                    token.raise_if_cancelled()
                    for sentence, full_text in self._segmenter.feed(fragment):
                        logger.info(f"Emitting sentence ({len(sentence)} chars): {sentence[:40]}...")
                        await self._process_sentence(sentence, full_text, token)
                        token.raise_if_cancelled()

            token.raise_if_cancelled()
            if not self._segmenter.full_content.strip():
                raise EmptyResponse()

            self._state = TurnState.FLUSHING
            for sentence, full_text in self._segmenter.flush():
                logger.info(f"Flushing trailing text ({len(sentence)} chars)")
                await self._process_sentence(sentence, full_text, token)
            token.raise_if_cancelled()

            if self._sequence_index > 0:
                await self.output.send_final(
                    OutputChunk(
                        text="",
                        audio=b"",
                        sequence_index=self._sequence_index - 1,
                        is_final=True,
                        total_chunks=self._sequence_index,
                    )
                )

        except Aborted:
            self._state = TurnState.ABORTED
            logger.info(f"Turn aborted after {self._sequence_index} chunk(s)")
            raise
        except SpeechStreamError:
            self._state = TurnState.ABORTED
            raise
        except Exception as exc:
            self._state = TurnState.ABORTED
            if token.cancelled or is_abort_error(exc):
                raise Aborted() from exc
            logger.error(f"Turn failed: {exc}", exc_info=True)
            raise UnknownError(get_error_message(exc)) from exc
        finally:
            # No-op when the token was already cancelled
            token.complete()

        self._state = TurnState.COMPLETED
        elapsed = (time.monotonic() - start_time) * 1000
        logger.info(f"Turn complete: {self._sequence_index} chunks in {elapsed:.0f}ms")
        return self._segmenter.full_content

    async def _process_sentence(
        self, sentence: str, full_text: str, token: CancellationToken
    ) -> None:
        if token.cancelled:
            return

        if len(sentence) > self.max_chunk_length:
            pieces = split_text(sentence, self.max_chunk_length)
            logger.debug(f"Split {len(sentence)}-char sentence into {len(pieces)} pieces")
        else:
            pieces = [sentence]

        for piece in pieces:
            if token.cancelled:
                return

            try:
                audio = await self.tts_service.synthesize(piece)
            except Exception as exc:
                if token.cancelled or is_abort_error(exc):
                    raise Aborted() from exc
                # Remaining pieces of this sentence are skipped, the turn goes on
                logger.error(f"TTS synthesis error for sentence: {get_error_message(exc)}")
                return

            if token.cancelled:
                return
            await self.output.send_text(full_text, piece)

            if token.cancelled:
                return
            await self.output.send_audio(
                OutputChunk(text=piece, audio=audio, sequence_index=self._sequence_index)
            )
            self._sequence_index += 1


__all__ = ["OutputChunk", "TurnOrchestrator", "TurnOutput", "TurnState"]
