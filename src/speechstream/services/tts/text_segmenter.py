"""
Sentence Segmenter for Streaming TTS Pipeline.

This module provides real-time sentence segmentation for streaming TTS.
It accumulates incoming LLM fragments and emits complete sentences as soon
as a terminator run (``.``, ``!``, ``?``) followed by whitespace or the end
of the buffer is seen.

Architecture:
    LLM fragments → SentenceSegmenter.feed() → (sentence, full_text) pairs

Every emitted pair carries the cumulative text seen so far, so the client
can render the whole response while audio for the newest sentence plays.

Usage:
    segmenter = SentenceSegmenter()

    async for fragment in llm_stream:
        for sentence, full_text in segmenter.feed(fragment):
            await handle(sentence, full_text)

    for sentence, full_text in segmenter.flush():
        await handle(sentence, full_text)
"""

import re
from typing import List, Optional, Tuple

# Any terminator run followed by whitespace or the end of the buffer
_BOUNDARY = re.compile(r"[.!?。！？]+(?:\s+|\Z)")
# Smallest prefix ending in a terminator run, plus its trailing whitespace
_SENTENCE = re.compile(r"^(.+?[.!?。！？]+)(?:\s+|\Z)")
# Everything up to the first terminator run, no whitespace requirement
_FALLBACK = re.compile(r"^([^.!?。！？]*[.!?。！？]+)")
_TRAILING_SPACE = re.compile(r"\s+\Z")

Segment = Tuple[str, str]


class SentenceSegmenter:
    """
    Stateful segmenter that turns a fragment stream into sentences.

    Attributes:
        flush_threshold: Length a punctuation-less buffer must exceed before
            it is emitted on a trailing whitespace (default: 50)
    """

    DEFAULT_FLUSH_THRESHOLD = 50

    def __init__(self, flush_threshold: int = DEFAULT_FLUSH_THRESHOLD):
        self.flush_threshold = flush_threshold
        self._full_content = ""
        self._pending = ""
        self._last_flushed_length = 0

    def feed(self, fragment: str) -> List[Segment]:
        """
        Consume a fragment and return the sentences it completes.

        Args:
            fragment: Text fragment from the LLM stream

        Returns:
            ``(sentence, full_text_so_far)`` pairs in emission order
        """
        if not fragment:
            return []

        self._full_content += fragment
        self._pending += fragment

        segments: List[Segment] = []
        while True:
            segment = self._extract_one()
            if segment is None:
                break
            segments.append(segment)
        return segments

    def _extract_one(self) -> Optional[Segment]:
        pending = self._pending
        if not pending:
            return None

        if _BOUNDARY.search(pending):
            match = _SENTENCE.match(pending)
            if match:
                sentence = match.group(1).strip()
                rest = pending[match.end():]
            else:
                # Terminator inside a line the primary pattern cannot span
                match = _FALLBACK.match(pending)
                if match:
                    sentence = match.group(1).strip()
                    rest = pending[match.end():].strip()
                else:
                    sentence = pending.strip()
                    rest = ""
            if not sentence:
                return None
            self._pending = rest
            return self._emit(sentence)

        # Long punctuation-less opening: only fires before anything was emitted
        if (
            len(self._full_content) == len(pending)
            and len(pending) > self.flush_threshold
            and _TRAILING_SPACE.search(pending)
        ):
            self._pending = ""
            return self._emit(pending.strip())

        return None

    def _emit(self, sentence: str) -> Segment:
        self._last_flushed_length = len(self._full_content)
        return sentence, self._full_content

    def flush(self) -> List[Segment]:
        """
        Flush buffered text once the LLM stream has ended.

        Emits the trimmed pending tail, then any suffix of the full content
        that was never covered by an emission.

        Returns:
            Zero, one or two ``(sentence, full_text)`` pairs
        """
        segments: List[Segment] = []

        tail = self._pending.strip()
        if tail:
            self._pending = ""
            segments.append(self._emit(tail))

        if len(self._full_content) > self._last_flushed_length:
            unaccounted = self._full_content[self._last_flushed_length:].strip()
            self._last_flushed_length = len(self._full_content)
            if unaccounted:
                segments.append((unaccounted, self._full_content))

        self._pending = ""
        return segments

    def reset(self) -> None:
        """Reset segmenter state for reuse."""
        self._full_content = ""
        self._pending = ""
        self._last_flushed_length = 0

    @property
    def full_content(self) -> str:
        """All text fed so far."""
        return self._full_content

    @property
    def pending(self) -> str:
        """Unterminated tail awaiting a boundary."""
        return self._pending

    @property
    def last_flushed_length(self) -> int:
        return self._last_flushed_length

    @property
    def buffer_size(self) -> int:
        """Current pending buffer size in characters."""
        return len(self._pending)
