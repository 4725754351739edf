"""
Text handling for the streaming TTS pipeline.

- text_segmenter: Splits streaming LLM text into sentences
- text_splitter: Splits sentences to fit the synthesis length ceiling

Architecture Overview:

    ┌─────────────┐     ┌───────────────────┐     ┌──────────────┐     ┌────────────┐
    │ LLM Stream  │────▶│ SentenceSegmenter │────▶│ split_text() │────▶│ TTSService │
    └─────────────┘     └───────────────────┘     └──────────────┘     └────────────┘
                                                                              │
                                                                              ▼
                                                                       ┌─────────────┐
                                                                       │  WebSocket  │
                                                                       └─────────────┘
"""

from .text_segmenter import SentenceSegmenter
from .text_splitter import is_response_complete, split_paragraphs, split_text

__all__ = ["SentenceSegmenter", "is_response_complete", "split_paragraphs", "split_text"]
