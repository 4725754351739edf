"""In-process stand-ins for the generation and synthesis backends."""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Optional

from speechstream.errors import SynthesisFailure
from speechstream.services.cancellation import CancellationToken


class StubChatService:
    """Replays scripted fragments and honours the turn's token."""

    model = "stub-model"

    def __init__(
        self,
        fragments: Iterable[str] = (),
        *,
        error: Optional[Exception] = None,
        block_calls: int = 0,
    ):
        self.fragments = list(fragments)
        self.error = error
        self.block_calls = block_calls
        self.calls: list[list] = []
        self.started = asyncio.Event()
        self.closed = False
        self.streams_closed = 0

    async def stream_completion(self, history, token: CancellationToken):
        self.calls.append(list(history))
        self.started.set()
        token.raise_if_cancelled()
        if len(self.calls) <= self.block_calls:
            await token.wait()
            token.raise_if_cancelled()
        try:
            for fragment in self.fragments:
                yield fragment
                token.raise_if_cancelled()
            if self.error is not None:
                raise self.error
        finally:
            self.streams_closed += 1

    async def aclose(self) -> None:
        self.closed = True


class StubTTSService:
    """Returns deterministic audio bytes, failing for selected inputs."""

    def __init__(
        self,
        *,
        fail_on: Iterable[str] = (),
        error: Optional[Exception] = None,
        on_synthesize: Optional[Callable[[str], None]] = None,
    ):
        self.fail_on = set(fail_on)
        self.error = error
        self.on_synthesize = on_synthesize
        self.calls: list[str] = []

    async def synthesize(self, text: str) -> bytes:
        self.calls.append(text)
        if self.on_synthesize is not None:
            self.on_synthesize(text)
        if self.error is not None:
            raise self.error
        if text in self.fail_on:
            raise SynthesisFailure("OpenAI TTS error: rejected")
        return b"audio:" + text.encode("utf-8")

    async def aclose(self) -> None:
        pass


class RecordingOutput:
    """Captures orchestrator output events in order."""

    def __init__(self, on_text: Optional[Callable[[str], None]] = None):
        self.events: list[tuple] = []
        self._on_text = on_text

    async def send_text(self, full_text: str, paragraph: str) -> None:
        self.events.append(("text", full_text, paragraph))
        if self._on_text is not None:
            self._on_text(paragraph)

    async def send_audio(self, chunk) -> None:
        self.events.append(("audio", chunk))

    async def send_final(self, chunk) -> None:
        self.events.append(("final", chunk))

    def kinds(self) -> list[str]:
        return [event[0] for event in self.events]
