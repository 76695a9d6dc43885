"""Tests for timed-text parsing (caption_clipper.core.parser).

WHY: Caption payloads arrive in several formats and are often sloppy.
The parser has to normalize all of them and drop bad blocks without
ever raising.

HOW: One test class per concern: timestamps, text cleanup, each format
recognizer, and the parse_captions entry point.
"""

from __future__ import annotations

import pytest

from caption_clipper.core.models import CaptionEntry
from caption_clipper.core.parser import (
    clean_caption_text,
    detect_format,
    parse_captions,
    parse_timestamp,
    recognize_time_ranges,
    recognize_timedtext,
    recognize_ttml,
    split_sentences,
)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


class TestParseTimestamp:

    def test_full_srt_timestamp(self):
        assert parse_timestamp("01:02:03,500") == pytest.approx(3723.5)

    def test_dot_separator(self):
        assert parse_timestamp("00:00:04.250") == pytest.approx(4.25)

    def test_minutes_seconds_only(self):
        """Two fields read as MM:SS, not HH:MM."""
        assert parse_timestamp("02:03.5") == pytest.approx(123.5)

    def test_seconds_suffix(self):
        assert parse_timestamp("12.5s") == pytest.approx(12.5)

    def test_bare_float(self):
        assert parse_timestamp("7") == pytest.approx(7.0)

    @pytest.mark.parametrize("value", ["", "abc", "1:2:3:4", "00:xx:01,000"])
    def test_garbage_raises_value_error(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)

    @pytest.mark.parametrize("value", ["inf", "infs", "-Infinity", "nan", "nans", "00:00:inf", "1e400"])
    def test_non_finite_raises_value_error(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)


# ---------------------------------------------------------------------------
# Text cleanup
# ---------------------------------------------------------------------------


class TestTextCleanup:

    def test_strips_tags_annotations_and_entities(self):
        raw = "[Music] <i>Ciao</i>   mondo &amp; amici"
        assert clean_caption_text(raw) == "Ciao mondo & amici"

    def test_escaped_markup_survives_as_text(self):
        assert clean_caption_text("a &lt;b&gt; c") == "a <b> c"

    def test_annotation_only_line_becomes_empty(self):
        assert clean_caption_text("[Applausi]") == ""

    def test_split_sentences_drops_terminators(self):
        assert split_sentences("Ciao! Come stai? Bene.") == ["Ciao", "Come stai", "Bene"]


# ---------------------------------------------------------------------------
# Recognizers
# ---------------------------------------------------------------------------


class TestTimeRangeRecognizer:

    def test_srt_blocks(self, sample_srt):
        entries = recognize_time_ranges(sample_srt)
        assert entries == [
            CaptionEntry(0.0, 4.0, "Ciao, come stai oggi?"),
            CaptionEntry(4.0, 8.0, "Sono molto felice di vederti."),
            CaptionEntry(8.0, 12.0, "Parliamo di cibo italiano adesso."),
        ]

    def test_one_invalid_range_is_skipped(self):
        raw = (
            "1\n00:00:00,000 --> 00:00:02,000\nPrima riga\n\n"
            "2\n00:00:0x,000 --> 00:00:04,000\nRiga rotta\n\n"
            "3\n00:00:04,000 --> 00:00:06,000\nTerza riga\n"
        )
        entries = recognize_time_ranges(raw)
        assert [e.text for e in entries] == ["Prima riga", "Terza riga"]

    def test_inverted_range_is_skipped(self):
        raw = (
            "1\n00:00:05,000 --> 00:00:04,000\nAll'indietro\n\n"
            "2\n00:00:06,000 --> 00:00:07,000\nAvanti\n"
        )
        assert [e.text for e in recognize_time_ranges(raw)] == ["Avanti"]

    def test_webvtt_with_header_and_short_timestamps(self):
        raw = (
            "WEBVTT\n\n"
            "00:00.000 --> 00:02.500\n<v Marco>Ciao a tutti\n\n"
            "intro\n00:02.500 --> 00:05.000\nBenvenuti\nal corso\n"
        )
        entries = recognize_time_ranges(raw)
        assert entries == [
            CaptionEntry(0.0, 2.5, "Ciao a tutti"),
            CaptionEntry(2.5, 5.0, "Benvenuti al corso"),
        ]

    def test_crlf_line_endings(self):
        raw = "1\r\n00:00:01,000 --> 00:00:03,000\r\nCiao\r\n\r\n"
        assert recognize_time_ranges(raw) == [CaptionEntry(1.0, 3.0, "Ciao")]

    def test_does_not_claim_other_payloads(self):
        assert recognize_time_ranges("Just some prose.") is None


class TestTtmlRecognizer:

    def test_paragraphs_with_nested_spans(self):
        raw = (
            '<tt xmlns="http://www.w3.org/ns/ttml"><body><div>'
            '<p begin="00:00:00.000" end="00:00:02.000">Ciao <span>a tutti</span></p>'
            '<p begin="00:00:02.000" end="00:00:04.500">Come state?</p>'
            "</div></body></tt>"
        )
        assert recognize_ttml(raw) == [
            CaptionEntry(0.0, 2.0, "Ciao a tutti"),
            CaptionEntry(2.0, 4.5, "Come state?"),
        ]

    def test_seconds_suffix_timing(self):
        raw = '<tt><p begin="1.5s" end="3s">Buongiorno</p></tt>'
        assert recognize_ttml(raw) == [CaptionEntry(1.5, 3.0, "Buongiorno")]

    def test_non_finite_timing_is_skipped(self):
        raw = (
            '<tt><p begin="0s" end="infs">Ciao a tutti quanti</p>'
            '<p begin="nans" end="2s">Niente</p>'
            '<p begin="2s" end="4s">Buonasera</p></tt>'
        )
        assert recognize_ttml(raw) == [CaptionEntry(2.0, 4.0, "Buonasera")]


class TestTimedtextRecognizer:

    def test_start_and_duration(self):
        raw = (
            '<?xml version="1.0" encoding="utf-8" ?><transcript>'
            '<text start="0.5" dur="2.0">Ciao &amp; benvenuti</text>'
            '<text start="2.5" dur="1.5">Grazie</text>'
            "</transcript>"
        )
        assert recognize_timedtext(raw) == [
            CaptionEntry(0.5, 2.5, "Ciao & benvenuti"),
            CaptionEntry(2.5, 4.0, "Grazie"),
        ]

    def test_zero_duration_cue_is_skipped(self):
        raw = '<transcript><text start="1" dur="0">Niente</text><text start="2" dur="1">Qualcosa</text></transcript>'
        assert [e.text for e in recognize_timedtext(raw)] == ["Qualcosa"]

    def test_infinite_duration_cue_is_skipped(self):
        raw = (
            '<transcript><text start="0" dur="inf">Per sempre</text>'
            '<text start="1e308" dur="1e308">Troppo lungo</text>'
            '<text start="2" dur="1">Qualcosa</text></transcript>'
        )
        assert recognize_timedtext(raw) == [CaptionEntry(2.0, 3.0, "Qualcosa")]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


class TestParseCaptions:

    def test_empty_input(self):
        assert parse_captions("") == []
        assert parse_captions("   \n ") == []

    def test_plain_text_gets_three_second_slots(self):
        entries = parse_captions("Ciao, come stai? Sono felice. Arrivederci!")
        assert entries == [
            CaptionEntry(0.0, 3.0, "Ciao, come stai"),
            CaptionEntry(3.0, 6.0, "Sono felice"),
            CaptionEntry(6.0, 9.0, "Arrivederci"),
        ]

    def test_entries_are_cleaned(self):
        raw = "1\n00:00:00,000 --> 00:00:02,000\n[Musica] <b>Ciao</b>\n"
        assert parse_captions(raw) == [CaptionEntry(0.0, 2.0, "Ciao")]

    def test_never_raises_on_garbage_blocks(self):
        raw = "1\n99:99 --> nope\n???\n\n2\n--> -->\n\n"
        assert parse_captions(raw) == []

    def test_unbounded_paragraph_yields_no_entries(self):
        assert parse_captions('<p begin="0s" end="infs">Ciao a tutti quanti</p>') == []

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ('<tt><p begin="0s" end="1s">a</p></tt>', "ttml"),
            ("1\n00:00:00,000 --> 00:00:01,000\na\n", "time_ranges"),
            ('<transcript><text start="0" dur="1">a</text></transcript>', "timedtext"),
            ("Solo testo.", "plain_text"),
        ],
    )
    def test_detect_format(self, raw, expected):
        assert detect_format(raw) == expected
