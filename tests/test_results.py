"""Tests for ResultStore and result schema validation."""

from __future__ import annotations

import json

import jsonschema
import pytest

from caption_clipper.core.models import Segment
from caption_clipper.pipeline.facade import PipelineResult
from caption_clipper.pipeline.results import ResultStore, validate_result


@pytest.fixture
def result_store(tmp_path):
    return ResultStore(tmp_path / "results")


def _success(video_id="abc"):
    return PipelineResult(
        success=True,
        video_id=video_id,
        title="Lezione",
        duration=10.0,
        segments=[Segment(id="1", start_time=0.0, end_time=8.0, text="Ciao a tutti", translation="Hi all")],
        captions_concat="Ciao a tutti",
    )


class TestResultStore:

    def test_save_and_load(self, result_store):
        path = result_store.save(_success())

        assert path.name == "abc.json"
        assert json.loads(path.read_text(encoding="utf-8"))["success"] is True
        assert result_store.load("abc") == _success()

    def test_failure_results_are_persisted(self, result_store):
        result_store.save(PipelineResult.failure("Segment 2 failed", video_id="abc"))

        loaded = result_store.load("abc")
        assert loaded.success is False
        assert loaded.error == "Segment 2 failed"

    def test_later_result_replaces_earlier(self, result_store):
        result_store.save(PipelineResult.failure("first", video_id="abc"))
        result_store.save(_success())
        assert result_store.load("abc").success is True
        assert not list(result_store.results_dir.glob("*.tmp"))

    def test_invalid_result_is_not_written(self, result_store):
        bad = _success()
        bad.error = "should not be here"

        with pytest.raises(jsonschema.ValidationError):
            result_store.save(bad)
        assert result_store.load("abc") is None

    def test_missing_result(self, result_store):
        assert result_store.load("nothing") is None

    @pytest.mark.parametrize("video_id", ["", "../etc", "a/b", "a\\b"])
    def test_unsafe_ids_rejected(self, result_store, video_id):
        with pytest.raises(ValueError):
            result_store.path_for(video_id)

    def test_delete(self, result_store):
        result_store.save(_success())
        assert result_store.delete("abc") is True
        assert result_store.delete("abc") is False


class TestSchema:

    def test_failure_needs_message(self):
        data = PipelineResult.failure("x", video_id="abc").to_dict()
        data["error"] = ""
        with pytest.raises(jsonschema.ValidationError):
            validate_result(data)

    def test_segment_text_required(self):
        data = _success().to_dict()
        data["segments"][0]["text"] = ""
        with pytest.raises(jsonschema.ValidationError):
            validate_result(data)

    def test_valid_success(self):
        validate_result(_success().to_dict())
