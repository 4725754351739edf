"""Tests for streaming sentence segmentation."""

from __future__ import annotations

import pytest

from speechstream.services.tts.text_segmenter import SentenceSegmenter


def _feed_all(fragments: list[str]) -> tuple[SentenceSegmenter, list[tuple[str, str]]]:
    segmenter = SentenceSegmenter()
    emitted: list[tuple[str, str]] = []
    for fragment in fragments:
        emitted.extend(segmenter.feed(fragment))
    emitted.extend(segmenter.flush())
    return segmenter, emitted


def _squash(text: str) -> str:
    return "".join(text.split())


def test_emits_sentences_with_cumulative_text() -> None:
    segmenter = SentenceSegmenter()

    assert segmenter.feed("First ") == []
    assert segmenter.feed("sentence. ") == [("First sentence.", "First sentence. ")]
    assert segmenter.feed("Second ") == []
    assert segmenter.feed("sentence.") == [
        ("Second sentence.", "First sentence. Second sentence.")
    ]
    assert segmenter.flush() == []
    assert segmenter.full_content == "First sentence. Second sentence."


def test_multiple_terminators_in_one_fragment() -> None:
    segmenter = SentenceSegmenter()

    emitted = segmenter.feed("First sentence. Second sentence. Third")

    assert emitted == [
        ("First sentence.", "First sentence. Second sentence. Third"),
        ("Second sentence.", "First sentence. Second sentence. Third"),
    ]
    assert segmenter.pending == "Third"
    assert segmenter.flush() == [("Third", "First sentence. Second sentence. Third")]


def test_terminator_runs_stay_with_their_sentence() -> None:
    _, emitted = _feed_all(["Really?! ", "Yes... ", "ok"])

    assert [sentence for sentence, _ in emitted] == ["Really?!", "Yes...", "ok"]


def test_decimal_point_is_not_a_boundary() -> None:
    segmenter = SentenceSegmenter()

    assert segmenter.feed("Pi is 3.14 roughly") == []
    assert segmenter.feed(". Next") == [("Pi is 3.14 roughly.", "Pi is 3.14 roughly. Next")]


def test_terminator_across_newline_uses_fallback_pattern() -> None:
    segmenter = SentenceSegmenter()

    emitted = segmenter.feed("Line one\nline two. Rest")

    assert emitted[0][0] == "Line one\nline two."
    assert segmenter.pending == "Rest"


def test_full_width_terminators() -> None:
    _, emitted = _feed_all(["你好。", "再见！"])

    assert [sentence for sentence, _ in emitted] == ["你好。", "再见！"]


def test_flush_emits_unterminated_text() -> None:
    segmenter, emitted = _feed_all(["Incomplete ", "sentence"])

    assert emitted == [("Incomplete sentence", "Incomplete sentence")]
    assert segmenter.last_flushed_length == len(segmenter.full_content)


def test_long_punctuationless_stream_is_never_dropped() -> None:
    fragments = [
        "Incomplete sentence ",
        "that keeps going and going without any punctuation at all",
    ]
    segmenter, emitted = _feed_all(fragments)

    assert emitted == [("".join(fragments), "".join(fragments))]
    assert segmenter.buffer_size == 0


def test_long_opening_without_punctuation_is_flushed_on_whitespace() -> None:
    segmenter = SentenceSegmenter()
    opening = "This opening runs well past fifty characters with no stop "

    emitted = segmenter.feed(opening)

    assert emitted == [(opening.strip(), opening)]
    assert segmenter.pending == ""


def test_long_fallback_only_applies_before_first_emission() -> None:
    # Pins current behaviour: once a sentence was emitted, a long
    # punctuation-less tail waits for flush() even if it ends in whitespace.
    segmenter = SentenceSegmenter()
    segmenter.feed("Short one. ")
    tail = "then a very long clause without any terminal punctuation whatsoever "

    assert segmenter.feed(tail) == []
    assert segmenter.pending == tail
    assert segmenter.flush() == [(tail.strip(), "Short one. " + tail)]


def test_short_opening_is_not_flushed_early() -> None:
    segmenter = SentenceSegmenter()

    assert segmenter.feed("only a few words ") == []


def test_whitespace_only_tail_is_ignored() -> None:
    segmenter = SentenceSegmenter()
    segmenter.feed("Done. ")

    assert segmenter.feed("   ") == []
    assert segmenter.flush() == []


@pytest.mark.parametrize(
    "fragments",
    [
        ["Hello there. How are you? I am fine!"],
        ["Hel", "lo the", "re. How", " are you?", " I am", " fine!"],
        ["No punctuation at all in this one"],
        ["Mixed. ", "tail without end ", "and more"],
        ["Numbers 1.5 and 2.5. ", "Ellipsis... ", "done"],
        ["Line one\nline two. ", "Line three"],
        ["A", ".", " ", "B", "!", "?", " C"],
    ],
)
def test_no_characters_lost_or_duplicated(fragments: list[str]) -> None:
    segmenter, emitted = _feed_all(fragments)
    text = "".join(fragments)

    assert _squash("".join(sentence for sentence, _ in emitted)) == _squash(text)
    assert segmenter.full_content == text
    assert segmenter.last_flushed_length <= len(segmenter.full_content)


def test_reset_clears_state() -> None:
    segmenter = SentenceSegmenter()
    segmenter.feed("Partial")

    segmenter.reset()

    assert segmenter.full_content == ""
    assert segmenter.buffer_size == 0
    assert segmenter.flush() == []


def test_empty_fragment_is_a_no_op() -> None:
    segmenter = SentenceSegmenter()

    assert segmenter.feed("") == []
    assert segmenter.full_content == ""
