import logging
from dataclasses import dataclass
from typing import List, Optional

import openai

from speechstream.config import Settings
from speechstream.errors import ERROR_MESSAGES, SynthesisFailure
from speechstream.services.chat_service import build_openai_client
from speechstream.services.tts.text_splitter import split_paragraphs, split_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesizedParagraph:
    audio: bytes
    paragraph: str
    index: int


class TTSService:
    """
    Service for Text-to-Speech generation through OpenAI's speech endpoint.

    Every call is bounded by ``tts_max_chars``; callers are expected to run
    text through :func:`split_text` first. Oversized input is rejected with
    :class:`SynthesisFailure` before any request is made.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self._settings = settings
        self._client = client or build_openai_client(settings)

    @property
    def max_chars(self) -> int:
        return self._settings.tts_max_chars

    async def synthesize(self, text: str) -> bytes:
        """
        Synthesize one bounded chunk of text to encoded audio bytes.

        Raises:
            SynthesisFailure: text too long, or the provider request failed.
        """
        if len(text) > self.max_chars:
            raise SynthesisFailure(
                ERROR_MESSAGES.tts_chunk_exceeds_limit(len(text), self.max_chars)
            )

        try:
            response = await self._client.audio.speech.create(
                model=self._settings.tts_model,
                voice=self._settings.tts_voice,
                input=text,
                response_format=self._settings.tts_response_format,
            )
            audio = await response.aread()
        except Exception as exc:
            raise SynthesisFailure.wrap(exc) from exc

        logger.debug(f"OpenAI TTS synthesized {len(audio)} bytes for text: {text[:50]}...")
        return audio

    async def synthesize_paragraphs(self, text: str) -> List[SynthesizedParagraph]:
        """
        Synthesize a whole response paragraph by paragraph.

        Long paragraphs are split against ``max_sentence_length`` and each
        piece is synthesized separately, so indices are per piece.
        """
        if not text.strip():
            raise SynthesisFailure(ERROR_MESSAGES.TEXT_EMPTY)

        max_length = self._settings.max_sentence_length
        results: List[SynthesizedParagraph] = []
        for paragraph in split_paragraphs(text, max_length):
            if not paragraph.strip():
                continue
            pieces = split_text(paragraph, max_length) if len(paragraph) > max_length else [paragraph]
            for piece in pieces:
                audio = await self.synthesize(piece)
                results.append(
                    SynthesizedParagraph(audio=audio, paragraph=piece, index=len(results))
                )
        return results

    async def aclose(self) -> None:
        await self._client.close()
