"""Sliding-window segmentation of caption entries into practice Segments.

WHY: Caption lines are too short (a few words) or too irregular to drill
on their own. Learners want clips of roughly the same length that still
read as complete thoughts. A fixed-width window with a small overlap
gives predictable clip lengths, and the sentence-boundary trim keeps the
text readable when a window catches a burst of fast speech.

HOW: A single pass over a clock t starting at 0:
  1. Sort entries by start (stable).
  2. While t < latest entry end:
       - window w = [t, min(t + segment_duration, t_max))
       - pick every entry that overlaps the window
       - no overlap: advance t by a full window and emit nothing
       - otherwise join the texts, trim to whole sentences if over the word
         budget, clamp the bounds to the window, emit if long enough, and
         advance t by (segment_duration - overlap)

RULES:
- Deterministic: same entries + options always give the same segments
- An entry overlaps [t, w) iff entry.start < w and entry.end > t
- Segment bounds: start = max(t, first.start), end = min(w, last.end)
  where first/last are the first/last overlapping entries by start time
- Segments shorter than min_segment_duration are dropped, never emitted
- max_segment_duration is advisory and never used to split an entry
- overlap >= segment_duration never terminates; callers validate options
- Ids are 1-based ordinals assigned in emission order
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from caption_clipper.core.models import CaptionEntry, Segment, SegmentationOptions
from caption_clipper.core.parser import collapse_whitespace

logger = logging.getLogger(__name__)

# A sentence is a run of non-terminators plus its terminators (if any)
SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")


def count_words(text: str) -> int:
    return len(text.split())


def trim_to_sentences(text: str, max_words: int) -> str:
    """Keep the longest prefix of whole sentences within max_words.

    WHY: A window that caught two long sentences is better as one complete
    sentence than as a mid-sentence cut.

    HOW: Splits on . ! ? (terminators stay attached to their sentence) and
    greedily accumulates whole sentences while the running word count
    stays within the budget. Stops at the first sentence that does not fit.

    RULES:
    - Returns the text unchanged when not even the first sentence fits
    - Never splits inside a sentence
    """
    sentences = [s.strip() for s in SENTENCE_RE.findall(text) if s.strip()]
    kept: List[str] = []
    words = 0
    for sentence in sentences:
        sentence_words = count_words(sentence)
        if words + sentence_words > max_words:
            break
        kept.append(sentence)
        words += sentence_words

    if not kept:
        return text
    return " ".join(kept)


def _window_text(entries: Sequence[CaptionEntry], options: SegmentationOptions) -> str:
    text = collapse_whitespace(" ".join(entry.text for entry in entries))
    if options.prefer_sentence_boundaries and count_words(text) > options.max_words_per_segment:
        text = trim_to_sentences(text, options.max_words_per_segment)
    return text


def build_segments(
    entries: Sequence[CaptionEntry],
    options: Optional[SegmentationOptions] = None,
) -> List[Segment]:
    """Window caption entries into practice segments.

    Args:
        entries: Caption entries in any order.
        options: Windowing policy; defaults to SegmentationOptions().

    Returns:
        Segments in emission order, which is ascending start time.
    """
    if options is None:
        options = SegmentationOptions()
    if not entries:
        return []

    ordered = sorted(entries, key=lambda entry: entry.start)
    t_max = max(entry.end for entry in ordered)
    step = options.segment_duration - options.overlap

    segments: List[Segment] = []
    t = 0.0
    while t < t_max:
        window_end = min(t + options.segment_duration, t_max)
        overlapping = [
            entry for entry in ordered
            if entry.start < window_end and entry.end > t
        ]

        if not overlapping:
            t += options.segment_duration
            continue

        start = max(t, overlapping[0].start)
        end = min(window_end, overlapping[-1].end)

        if end - start >= options.min_segment_duration:
            segments.append(Segment(
                id=str(len(segments) + 1),
                start_time=start,
                end_time=end,
                text=_window_text(overlapping, options),
            ))
        else:
            logger.debug("Dropping %.2fs window at %.2f (below minimum)", end - start, start)

        t += step

    logger.debug("Built %d segments from %d caption entries", len(segments), len(ordered))
    return segments
