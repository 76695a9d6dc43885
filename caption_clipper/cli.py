"""Command-line interface for the caption clipper.

WHY: Useful outside the web app: process one video from a terminal,
try segmentation options against a local caption file without touching
the network, or start the HTTP API.

HOW: argparse builds SegmentationOptions from the flags and validates
them up front. With --captions-file the local file is parsed and
segmented offline and the segments are printed. Otherwise the full
ClipPipeline runs under asyncio.run() and its result is printed as JSON.
--serve starts the FastAPI app with uvicorn instead.

RULES:
- Status messages go to stderr; JSON goes to stdout (or --output)
- Exit 0 on success, 1 on a failed result, 2 on invalid options
- --no-translation skips the translator entirely
- Python 3.9 compatible: no match/case, no X | Y unions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from caption_clipper.config import DEFAULT_SOURCE_LANGUAGE, DEFAULT_TARGET_LANGUAGE, PROCESSED_DIR
from caption_clipper.core.models import SegmentationOptions
from caption_clipper.core.parser import detect_format, parse_captions
from caption_clipper.core.segmenter import build_segments
from caption_clipper.errors import ConfigurationError
from caption_clipper.pipeline.extractor import YtDlpExtractor
from caption_clipper.pipeline.facade import ClipPipeline, refine_segments
from caption_clipper.pipeline.orchestrator import ExtractionOrchestrator
from caption_clipper.pipeline.progress import ProgressStore
from caption_clipper.providers.translation import create_translator
from caption_clipper.providers.youtube import YouTubeProvider

EXIT_FAILED = 1
EXIT_CONFIG = 2


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _emit(data: Dict[str, Any], output: Optional[str]) -> None:
    """Write JSON to ``output`` when given, else to stdout."""
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        _status("Wrote {}".format(output))
    else:
        print(text)


def options_from_args(args: argparse.Namespace) -> SegmentationOptions:
    """Build validated SegmentationOptions from parsed flags.

    Raises:
        ConfigurationError: If the flags describe unusable options.
    """
    options = SegmentationOptions(
        segment_duration=args.segment_duration,
        overlap=args.overlap,
        min_segment_duration=args.min_duration,
        prefer_sentence_boundaries=not args.no_sentence_boundaries,
        max_words_per_segment=args.max_words,
    )
    options.validate()
    return options


def _segment_file(args: argparse.Namespace, options: SegmentationOptions) -> int:
    path = Path(args.captions_file)
    if not path.is_file():
        _status("Error: File not found: {}".format(path))
        return EXIT_FAILED

    raw = path.read_text(encoding="utf-8", errors="replace")
    caption_format = detect_format(raw)
    entries = parse_captions(raw)
    segments = refine_segments(
        build_segments(entries, options), optimize=args.optimize, merge=args.merge
    )
    _status("Parsed {} entries ({}), built {} segments".format(
        len(entries), caption_format, len(segments)
    ))
    _emit({
        "source": str(path),
        "format": caption_format,
        "entries": len(entries),
        "segments": [segment.to_dict() for segment in segments],
    }, args.output)
    return 0


def _process_url(args: argparse.Namespace, options: SegmentationOptions) -> int:
    translator = None if args.no_translation else create_translator()
    pipeline = ClipPipeline(
        provider=YouTubeProvider(),
        orchestrator=ExtractionOrchestrator(
            YtDlpExtractor(), ProgressStore(), output_dir=Path(args.output_dir)
        ),
        translator=translator,
        source_lang=args.language,
        target_lang=args.target_language,
    )

    _status("Processing {} ...".format(args.url))
    result = asyncio.run(pipeline.process_video(
        args.url,
        include_translation=not args.no_translation,
        optimize=args.optimize,
        merge=args.merge,
        options=options,
    ))
    _emit(result.to_dict(), args.output)

    if not result.success:
        _status("Error: {}".format(result.error))
        return EXIT_FAILED
    _status("Done: {} segments for '{}'".format(len(result.segments), result.title))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="caption-clipper",
        description="Cut YouTube videos into short, translated practice clips "
                    "based on their captions.",
    )

    parser.add_argument(
        "url",
        nargs="?",
        help="YouTube URL or video ID to process.",
    )
    parser.add_argument(
        "--segment-duration",
        type=float,
        default=8.0,
        help="Nominal segment length in seconds (default: %(default)s).",
    )
    parser.add_argument(
        "--overlap",
        type=float,
        default=1.0,
        help="Seconds each window re-examines from the previous one (default: %(default)s).",
    )
    parser.add_argument(
        "--min-duration",
        type=float,
        default=3.0,
        help="Drop segments shorter than this many seconds (default: %(default)s).",
    )
    parser.add_argument(
        "--max-words",
        type=int,
        default=20,
        help="Word budget before trimming to whole sentences (default: %(default)s).",
    )
    parser.add_argument(
        "--no-sentence-boundaries",
        action="store_true",
        help="Keep over-long segment text instead of trimming to whole sentences.",
    )
    parser.add_argument(
        "--no-translation",
        action="store_true",
        help="Skip translating segments.",
    )
    parser.add_argument(
        "--optimize",
        action="store_true",
        help="Run the quality optimizer over the segments.",
    )
    parser.add_argument(
        "--merge",
        action="store_true",
        help="Merge segments separated by gaps of 2 seconds or less.",
    )
    parser.add_argument(
        "--language",
        default=DEFAULT_SOURCE_LANGUAGE,
        help="Caption language ISO 639-1 code (default: %(default)s).",
    )
    parser.add_argument(
        "--target-language",
        default=DEFAULT_TARGET_LANGUAGE,
        help="Translation language ISO 639-1 code (default: %(default)s).",
    )
    parser.add_argument(
        "--captions-file",
        default=None,
        help="Segment a local caption file (SRT, VTT, TTML, timedtext or plain "
             "text) offline instead of processing a URL.",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the JSON result to this file instead of stdout.",
    )
    parser.add_argument(
        "--output-dir",
        default=PROCESSED_DIR,
        help="Directory for extracted clips (default: %(default)s).",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP API instead of processing a video.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log pipeline progress to stderr.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.serve:
        from caption_clipper.server.app import run_api
        run_api()
        return

    try:
        options = options_from_args(args)
    except ConfigurationError as e:
        _status("Error: {}".format(e))
        sys.exit(EXIT_CONFIG)

    if args.captions_file:
        code = _segment_file(args, options)
    elif args.url:
        try:
            code = _process_url(args, options)
        except KeyboardInterrupt:
            _status("\nCancelled by user.")
            sys.exit(130)
    else:
        parser.error("a URL is required unless --captions-file or --serve is given")

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
