"""Length-bounded text splitting for the speech synthesis ceiling."""

import re
from typing import List

DEFAULT_MAX_LENGTH = 4000

_SENTENCE_ENDERS = ".!?"
_COMPLETE_RESPONSE = re.compile(r"[.!?。！？]\s*\Z")
_BLANK_LINE = re.compile(r"\n\s*\n")


def split_text(text: str, max_length: int = DEFAULT_MAX_LENGTH) -> List[str]:
    """
    Split ``text`` into ordered pieces no longer than ``max_length``.

    Each cut prefers the last sentence terminator inside the window, then the
    last space, then a hard cut at ``max_length``. Terminators and spaces in
    the first half of the window are ignored so no piece comes out
    degenerately short. Whitespace around each cut is dropped.

    Args:
        text: Text to split
        max_length: Maximum characters per piece

    Returns:
        Pieces in original order; empty when ``text`` is blank
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")

    chunks: List[str] = []
    remaining = text

    while len(remaining) > max_length:
        cut = max_length
        sentence_end = max(remaining.rfind(ch, 0, max_length) for ch in _SENTENCE_ENDERS)

        if sentence_end > max_length * 0.5:
            cut = sentence_end + 1
        else:
            # A space at index max_length is dropped by the strip below
            last_space = remaining.rfind(" ", 0, max_length + 1)
            if last_space > max_length * 0.5:
                cut = last_space + 1

        chunk = remaining[:cut].strip()
        if chunk:
            chunks.append(chunk)
        remaining = remaining[cut:].strip()

    if remaining.strip():
        chunks.append(remaining)

    return chunks


def split_paragraphs(text: str, max_length: int = DEFAULT_MAX_LENGTH) -> List[str]:
    """Split ``text`` on blank lines, falling back to single newlines."""
    paragraphs = [p.strip() for p in _BLANK_LINE.split(text)]
    paragraphs = [p for p in paragraphs if p]

    if len(paragraphs) == 1 and "\n" in text:
        return [line.strip() for line in text.split("\n") if line.strip()]

    if len(paragraphs) == 1 and len(paragraphs[0]) > max_length:
        return split_text(paragraphs[0], max_length)

    return paragraphs if paragraphs else [text]


def is_response_complete(text: str) -> bool:
    """True when ``text`` is empty or ends in terminal punctuation."""
    trimmed = text.strip()
    if not trimmed:
        return True
    return bool(_COMPLETE_RESPONSE.search(trimmed))


__all__ = ["DEFAULT_MAX_LENGTH", "is_response_complete", "split_paragraphs", "split_text"]
