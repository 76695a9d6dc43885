"""Quality scoring, repair, merging, and validation of Segments.

WHY: The windowing pass is purely mechanical. Some windows come out too
short, too wordy, still carrying markup, or without a translation. The
quality pass flags those problems for the learner-facing UI, repairs the
ones that can be repaired without guessing, and provides the final
acceptance gate before segments are handed to media extraction.

HOW: assess_segment() starts from 1.0 and applies cumulative deductions.
optimize_segment() re-runs the parser's cleanup and fills a missing
translation with an explicit placeholder. merge_adjacent() joins
segments that sit within a small gap of each other. validate_segment()
is a boolean structural check.

RULES:
- Scores are floats in [0, 1]; deductions never push below 0
- optimize never drops a segment and never lowers its score
- optimize returns the same object when the score is already >= 0.8
- merge_adjacent is idempotent: merging twice equals merging once
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import List, Sequence

from caption_clipper.config import TRANSLATION_PLACEHOLDER
from caption_clipper.core.models import Segment
from caption_clipper.core.parser import clean_caption_text, collapse_whitespace

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

MIN_DURATION_S = 3.0
MAX_DURATION_S = 15.0
MIN_WORDS = 3
MAX_WORDS = 25
GOOD_SCORE = 0.8
MERGE_GAP_S = 2.0

FORMATTING_CHARS_RE = re.compile(r"[{}\[\]()<>]")

ISSUE_TOO_SHORT = "Segment too short"
ISSUE_TOO_LONG = "Segment too long"
ISSUE_TEXT_TOO_SHORT = "Text too short"
ISSUE_TEXT_TOO_LONG = "Text too long"
ISSUE_MISSING_TRANSLATION = "Missing translation"
ISSUE_FORMATTING = "Contains formatting characters"


@dataclass
class QualityReport:
    """Result of assessing one segment."""

    score: float
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


def assess_segment(segment: Segment) -> QualityReport:
    """Score a segment against duration, length, translation, and formatting.

    RULES:
    - duration < 3s: -0.2; duration > 15s: -0.1
    - fewer than 3 words: -0.3; more than 25 words: -0.1
    - empty translation: -0.2
    - any of { } [ ] ( ) < > in the text: -0.1
    """
    issues: List[str] = []
    suggestions: List[str] = []
    score = 1.0

    duration = segment.end_time - segment.start_time
    if duration < MIN_DURATION_S:
        issues.append(ISSUE_TOO_SHORT)
        score -= 0.2
    elif duration > MAX_DURATION_S:
        issues.append(ISSUE_TOO_LONG)
        suggestions.append("Consider splitting into smaller segments")
        score -= 0.1

    word_count = len(segment.text.split())
    if word_count < MIN_WORDS:
        issues.append(ISSUE_TEXT_TOO_SHORT)
        score -= 0.3
    elif word_count > MAX_WORDS:
        issues.append(ISSUE_TEXT_TOO_LONG)
        suggestions.append("Consider splitting at sentence boundaries")
        score -= 0.1

    if not segment.translation.strip():
        issues.append(ISSUE_MISSING_TRANSLATION)
        suggestions.append("Add a translation")
        score -= 0.2

    if FORMATTING_CHARS_RE.search(segment.text):
        issues.append(ISSUE_FORMATTING)
        suggestions.append("Clean up text formatting")
        score -= 0.1

    # Round away float residue such as 0.7999999999999999
    return QualityReport(score=max(0.0, round(score, 4)), issues=issues, suggestions=suggestions)


def optimize_segment(segment: Segment) -> Segment:
    """Repair formatting and a missing translation on a low-scoring segment.

    HOW: Segments at or above GOOD_SCORE are returned untouched. Otherwise
    a copy is made; the translation placeholder is filled in when missing,
    and the text is re-cleaned when it carries formatting characters. A
    cleaned text is only adopted when it is non-empty and does not score
    worse than the uncleaned one (stripping "[Music]" from a two-word line
    must not trade a formatting issue for a text-too-short issue).
    """
    report = assess_segment(segment)
    if report.score >= GOOD_SCORE:
        return segment

    improved = replace(segment)
    if ISSUE_MISSING_TRANSLATION in report.issues:
        improved.translation = TRANSLATION_PLACEHOLDER

    if ISSUE_FORMATTING in report.issues:
        cleaned = clean_caption_text(segment.text)
        if cleaned and cleaned != segment.text:
            candidate = replace(improved, text=cleaned)
            if assess_segment(candidate).score >= assess_segment(improved).score:
                improved = candidate

    return improved


def optimize_segments(segments: Sequence[Segment]) -> List[Segment]:
    return [optimize_segment(segment) for segment in segments]


def merge_adjacent(segments: Sequence[Segment], max_gap: float = MERGE_GAP_S) -> List[Segment]:
    """Merge segments whose gap to the running accumulator is <= max_gap.

    HOW: One left-to-right pass. The accumulator absorbs the next segment
    when next.start_time - accumulator.end_time <= max_gap (overlapping
    segments have a negative gap and always merge); otherwise it is
    flushed and the next segment becomes the accumulator.

    RULES:
    - The merged segment keeps the first segment's id and start time
    - Texts (and non-empty translations) are space-joined and collapsed
    - Artifact paths/URLs are cleared on a merge since the time range changed
    - Input segments are never mutated
    """
    if not segments:
        return []

    merged: List[Segment] = []
    current = replace(segments[0])

    for nxt in segments[1:]:
        if nxt.start_time - current.end_time <= max_gap:
            current = replace(
                current,
                end_time=max(current.end_time, nxt.end_time),
                text=collapse_whitespace("{} {}".format(current.text, nxt.text)),
                translation=collapse_whitespace(
                    "{} {}".format(current.translation, nxt.translation)
                ),
                audio_path=None,
                video_path=None,
                audio_url=None,
                video_url=None,
            )
        else:
            merged.append(current)
            current = replace(nxt)

    merged.append(current)
    return merged


def validate_segment(segment: Segment) -> bool:
    """Final acceptance gate before extraction."""
    return bool(
        segment.id
        and segment.start_time >= 0
        and segment.end_time > segment.start_time
        and segment.text.strip()
    )
