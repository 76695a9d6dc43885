"""Core timed-text models, parsing, segmentation, and quality checks.

WHY: The core package holds the CPU-only heart of the pipeline. Nothing
here touches the network, the filesystem, or a subprocess, so every
function can be tested with plain in-memory data.

HOW: models.py defines the data structures, parser.py turns raw caption
payloads into CaptionEntry lists, segmenter.py windows entries into
Segments, quality.py scores, repairs, and merges Segments.

RULES:
- Functions here never block and never await
- Models are the contract between stages; change with care
"""
