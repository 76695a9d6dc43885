"""Caption Clipper: turn a captioned video into study-sized practice clips.

WHY: Language learners practise best on short clips with the exact words
spoken and a translation next to them. Online videos already ship timed
captions; this package turns those captions into bounded, overlapping
practice segments and cuts matching audio/video clips for each one.

HOW: Four-stage pipeline: parse (timed-text formats into CaptionEntry),
segment (sliding window into Segment), repair (quality scoring and cleanup),
extract (yt-dlp per segment with retries and progress tracking). The
pipeline facade composes the stages; the CLI and HTTP API drive the facade.

RULES:
- Parsing and segmentation are pure and synchronous
- Only provider calls, translation calls and extraction subprocesses await
- Progress is published through an injected ProgressStore, never a global
"""

__version__ = "0.1.0"
