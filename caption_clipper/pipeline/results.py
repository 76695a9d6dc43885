"""On-disk store for finished pipeline results.

WHY: Background jobs outlive the request that started them. The client
polls progress, then fetches the result separately, possibly after a
server restart, so results are written to disk rather than held in
memory.

HOW: One JSON file per video, ``{results_dir}/{video_id}.json``. Each
result is validated against the packaged JSON schema before it is
written, then written to a temporary file and renamed into place.

RULES:
- Schema validation is mandatory; an invalid result raises
  jsonschema.ValidationError and nothing is written
- A later result for the same video replaces the earlier one
- Video IDs containing path separators are rejected
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from caption_clipper.config import RESULTS_DIR
from caption_clipper.pipeline.facade import PipelineResult

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "pipeline_result.schema.json"


def _load_schema() -> Dict[str, Any]:
    """Load the result JSON schema from the package data."""
    with open(_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


_CACHED_SCHEMA: Optional[Dict[str, Any]] = None


def _get_schema() -> Dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        _CACHED_SCHEMA = _load_schema()
    return _CACHED_SCHEMA


def validate_result(data: Dict[str, Any]) -> None:
    """Raise jsonschema.ValidationError if ``data`` is not a valid result."""
    jsonschema.validate(instance=data, schema=_get_schema())


class ResultStore:
    """Read and write PipelineResult JSON files under one directory."""

    def __init__(self, results_dir: Optional[Path] = None) -> None:
        self.results_dir = Path(results_dir or RESULTS_DIR)

    def path_for(self, video_id: str) -> Path:
        if not video_id or "/" in video_id or "\\" in video_id or ".." in video_id:
            raise ValueError("Invalid video ID: {!r}".format(video_id))
        return self.results_dir / "{}.json".format(video_id)

    def save(self, result: PipelineResult) -> Path:
        """Validate and persist ``result``; returns the file path."""
        data = result.to_dict()
        validate_result(data)

        path = self.path_for(result.video_id or "")
        self.results_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, path)

        logger.info("Saved %s result for %s to %s",
                    "success" if result.success else "error", result.video_id, path)
        return path

    def load(self, video_id: str) -> Optional[PipelineResult]:
        """Return the stored result for ``video_id``, or None if absent."""
        path = self.path_for(video_id)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return PipelineResult.from_dict(json.load(f))

    def delete(self, video_id: str) -> bool:
        path = self.path_for(video_id)
        if not path.exists():
            return False
        path.unlink()
        return True
