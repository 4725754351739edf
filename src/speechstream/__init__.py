"""Sentence-by-sentence streaming chat with interleaved speech synthesis."""

__version__ = "0.1.0"
