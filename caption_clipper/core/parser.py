"""Timed-text parsing: raw caption payloads to CaptionEntry lists.

WHY: Caption providers hand back whatever format the track was stored in:
TTML from the Data API, SRT or WebVTT from uploads, YouTube's own
"timedtext" XML, or sometimes just a paragraph of prose. The segmenter
needs one uniform, cleaned, timed representation regardless of source.

HOW: parse_captions() tries an ordered tuple of recognizers. Each
recognizer is a pure function that returns None when it does not
recognize the payload, or a (possibly empty) list of entries when it
does. If none recognizes the payload it is treated as untimed prose and
every sentence gets a fixed 3-second slot.

RULES:
- The parser never raises for a malformed block; it skips the block
- A block is skipped when its timestamps do not parse or are not finite,
  when end <= start, or when its text is empty after cleanup
- Cleanup strips tags, unescapes entities, drops [bracketed] annotations
  such as [Music], and collapses whitespace
- Entries are returned in source order; the segmenter sorts them
- Sentence splitting is the deliberate ". ! ?" heuristic, not NLP
"""

from __future__ import annotations

import html
import logging
import math
import re
from typing import Callable, List, Optional, Tuple

from caption_clipper.core.models import CaptionEntry

logger = logging.getLogger(__name__)

# =============================================================================
# Text utilities
# =============================================================================

TAG_RE = re.compile(r"<[^>]*>")
ANNOTATION_RE = re.compile(r"\[.*?\]")
WHITESPACE_RE = re.compile(r"\s+")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

PLAIN_TEXT_SLOT_S = 3.0
"""Seconds assigned to each sentence of an untimed transcript."""


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return WHITESPACE_RE.sub(" ", text).strip()


def clean_caption_text(text: str) -> str:
    """Strip markup, entities, and non-speech annotations from caption text.

    Tags are removed before entities are unescaped, so an escaped
    ``&lt;b&gt;`` survives as literal text instead of vanishing.
    """
    text = TAG_RE.sub("", text)
    text = html.unescape(text)
    text = ANNOTATION_RE.sub("", text)
    return collapse_whitespace(text)


def split_sentences(text: str) -> List[str]:
    """Split on runs of . ! ? and return the non-empty trimmed pieces."""
    return [s.strip() for s in SENTENCE_SPLIT_RE.split(text) if s.strip()]


# =============================================================================
# Timestamps
# =============================================================================


def parse_timestamp(value: str) -> float:
    """Convert a caption timestamp to float seconds.

    Accepts ``HH:MM:SS[,.]mmm`` (hours and minutes may be omitted and are
    zero-filled from the left), ``123.45s``, and a bare float.

    Raises:
        ValueError: If the value matches none of the accepted forms, or
            names a non-finite number such as ``inf`` or ``nan``.
    """
    value = value.strip()
    if not value:
        raise ValueError("empty timestamp")

    if ":" in value:
        parts = value.split(":")
        if len(parts) > 3:
            raise ValueError("too many fields in timestamp {!r}".format(value))
        # Right-align so "MM:SS.mmm" reads as minutes, not hours
        parts = ["0"] * (3 - len(parts)) + parts
        hours = int(parts[0] or "0")
        minutes = int(parts[1] or "0")
        seconds = float((parts[2] or "0").replace(",", "."))
        result = hours * 3600 + minutes * 60 + seconds
    elif value.endswith("s"):
        result = float(value[:-1])
    else:
        result = float(value)

    if not math.isfinite(result):
        raise ValueError("non-finite timestamp {!r}".format(value))
    return result


# =============================================================================
# Recognizers
# =============================================================================

TTML_PARAGRAPH_RE = re.compile(
    r"<p\b[^>]*?\bbegin=\"([^\"]*)\"[^>]*?\bend=\"([^\"]*)\"[^>]*>(.*?)</p>",
    re.DOTALL,
)
TIME_RANGE_RE = re.compile(
    r"((?:\d{1,2}:)?\d{1,2}:\d{2}[,.]\d{1,3})\s*-->\s*((?:\d{1,2}:)?\d{1,2}:\d{2}[,.]\d{1,3})"
)
TIMEDTEXT_RE = re.compile(
    r"<text\b[^>]*?\bstart=\"([^\"]*)\"[^>]*?\bdur=\"([^\"]*)\"[^>]*>(.*?)</text>",
    re.DOTALL,
)
BLOCK_SEPARATOR_RE = re.compile(r"\n\s*\n")


def _make_entry(start_raw: str, end_raw: str, text_raw: str) -> Optional[CaptionEntry]:
    """Build one entry from raw fields, or None if the block must be skipped."""
    try:
        start = parse_timestamp(start_raw)
        end = parse_timestamp(end_raw)
    except ValueError:
        logger.debug("Skipping caption block with bad timestamps: %r / %r", start_raw, end_raw)
        return None
    return _build_entry(start, end, text_raw)


def _build_entry(start: float, end: float, text_raw: str) -> Optional[CaptionEntry]:
    text = clean_caption_text(text_raw)
    # NaN fails every comparison, so finiteness is checked explicitly
    if not (math.isfinite(start) and math.isfinite(end)):
        logger.debug("Skipping caption block with non-finite timing")
        return None
    if not text or start < 0 or end <= start:
        logger.debug("Skipping caption block %.3f-%.3f (empty or inverted)", start, end)
        return None
    return CaptionEntry(start=start, end=end, text=text)


def recognize_ttml(raw: str) -> Optional[List[CaptionEntry]]:
    """Format A: TTML ``<p begin=".." end="..">`` paragraphs."""
    if "<p" not in raw and "ttml" not in raw:
        return None

    entries = []
    for match in TTML_PARAGRAPH_RE.finditer(raw):
        entry = _make_entry(match.group(1), match.group(2), match.group(3))
        if entry is not None:
            entries.append(entry)
    return entries


def recognize_time_ranges(raw: str) -> Optional[List[CaptionEntry]]:
    """Format B: SRT and WebVTT blocks with ``start --> end`` lines.

    A block is an optional cue identifier line, the time-range line, and
    one or more text lines. Blocks without a valid range (including the
    ``WEBVTT`` header and malformed ranges) are skipped.
    """
    if "-->" not in raw:
        return None

    normalized = raw.replace("\r\n", "\n").replace("\r", "\n")
    entries = []
    for block in BLOCK_SEPARATOR_RE.split(normalized.strip()):
        lines = block.strip().split("\n")
        range_index = None
        match = None
        # The range sits on line 0 (WebVTT without id) or line 1 (SRT index)
        for idx, line in enumerate(lines[:2]):
            match = TIME_RANGE_RE.search(line)
            if match:
                range_index = idx
                break

        if match is None or range_index is None:
            logger.debug("Skipping caption block without a valid time range")
            continue

        text = " ".join(lines[range_index + 1:])
        entry = _make_entry(match.group(1), match.group(2), text)
        if entry is not None:
            entries.append(entry)
    return entries


def recognize_timedtext(raw: str) -> Optional[List[CaptionEntry]]:
    """Format C: YouTube timedtext XML ``<text start=".." dur="..">``."""
    if "<text" not in raw:
        return None

    entries = []
    for match in TIMEDTEXT_RE.finditer(raw):
        try:
            start = parse_timestamp(match.group(1))
            end = start + parse_timestamp(match.group(2))
        except ValueError:
            logger.debug("Skipping timedtext cue with bad timing: %r", match.group(0)[:80])
            continue
        entry = _build_entry(start, end, match.group(3))
        if entry is not None:
            entries.append(entry)
    return entries


def synthesize_plain_text(raw: str) -> List[CaptionEntry]:
    """Fallback: one fixed-width slot per sentence of untimed prose."""
    entries = []
    current = 0.0
    for sentence in split_sentences(raw):
        text = clean_caption_text(sentence)
        if not text:
            continue
        entries.append(CaptionEntry(start=current, end=current + PLAIN_TEXT_SLOT_S, text=text))
        current += PLAIN_TEXT_SLOT_S
    return entries


Recognizer = Callable[[str], Optional[List[CaptionEntry]]]

RECOGNIZERS: Tuple[Tuple[str, Recognizer], ...] = (
    ("ttml", recognize_ttml),
    ("time_ranges", recognize_time_ranges),
    ("timedtext", recognize_timedtext),
)
"""Ordered recognizers; the first one that returns a list wins."""


# =============================================================================
# Entry point
# =============================================================================


def detect_format(raw: str) -> str:
    """Return the name of the recognizer that claims the payload, or "plain_text"."""
    for name, recognizer in RECOGNIZERS:
        if recognizer(raw) is not None:
            return name
    return "plain_text"


def parse_captions(raw: str) -> List[CaptionEntry]:
    """Parse a raw caption payload into a list of CaptionEntry.

    Args:
        raw: Caption text in any supported format, or untimed prose.

    Returns:
        Entries in source order. Empty input yields an empty list.
    """
    if not raw or not raw.strip():
        return []

    for name, recognizer in RECOGNIZERS:
        entries = recognizer(raw)
        if entries is not None:
            logger.debug("Parsed %d caption entries as %s", len(entries), name)
            return entries

    entries = synthesize_plain_text(raw)
    logger.debug("Synthesized %d caption entries from plain text", len(entries))
    return entries
