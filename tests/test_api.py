"""Tests for the FastAPI application (caption_clipper.server.app).

WHY: The HTTP layer is the contract with the practice frontend. Status
codes, body shapes and the mapping from pipeline errors to 4xx/5xx
responses need to stay stable.

HOW: FastAPI TestClient drives the app in-process. The module-level
progress store, result store and job runner are swapped for fresh,
test-owned instances, and YouTube/translation clients are patched with
in-memory fakes, so no background job, network call or yt-dlp process
ever runs.

RULES:
- All tests use the synchronous TestClient
- Each test gets its own stores; nothing leaks between tests
- Tests cover: happy paths, 400 bad input, 404 not found, 409 conflict,
  422 schema violations, 502 upstream failure, 503 not configured
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from caption_clipper import __version__
from caption_clipper.core.models import ProgressStatus, Segment
from caption_clipper.errors import CaptionFetchError
from caption_clipper.pipeline.facade import PipelineResult
from caption_clipper.pipeline.progress import ProgressStore
from caption_clipper.pipeline.results import ResultStore
from caption_clipper.server import app as app_module

VIDEO_ID = "dQw4w9WgXcQ"
VIDEO_URL = "https://www.youtube.com/watch?v=" + VIDEO_ID


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores(tmp_path, monkeypatch):
    """Replace the shared stores and job runner with test-owned ones."""
    progress = ProgressStore()
    results = ResultStore(tmp_path / "results")
    runner = MagicMock()
    runner.cancel.return_value = False

    monkeypatch.setattr(app_module, "progress_store", progress)
    monkeypatch.setattr(app_module, "result_store", results)
    monkeypatch.setattr(app_module, "job_runner", runner)
    return progress, results, runner


@pytest.fixture
def client(stores):
    return TestClient(app_module.app)


def _stored_result(results: ResultStore) -> None:
    results.save(PipelineResult(
        success=True,
        video_id=VIDEO_ID,
        title="Conversazione",
        duration=12.0,
        segments=[
            Segment(
                id="1", start_time=0.0, end_time=8.0, text="Ciao come stai",
                translation="Hi how are you", audio_path="/srv/processed/audio/x.mp3",
                audio_url="http://test/processed/audio/{}_0_8.mp3".format(VIDEO_ID),
            ),
            Segment(id="2", start_time=7.0, end_time=12.0, text="Sono felice", translation="I am happy"),
        ],
        captions_concat="Ciao come stai Sono felice",
    ))


# ---------------------------------------------------------------------------
# POST /videos/process
# ---------------------------------------------------------------------------


class TestProcessVideo:

    def test_accepted(self, client, stores):
        """A valid URL queues a job and returns 202 with polling URLs."""
        _, _, runner = stores

        resp = client.post("/videos/process", json={"video_url": VIDEO_URL, "segment_duration": 10})

        assert resp.status_code == 202
        body = resp.json()
        assert body == {
            "video_id": VIDEO_ID,
            "status": "pending",
            "progress_url": "/videos/{}/progress".format(VIDEO_ID),
            "result_url": "/videos/{}/result".format(VIDEO_ID),
        }
        request = runner.submit.call_args[0][0]
        assert request.video_id == VIDEO_ID
        assert request.segment_duration == 10
        assert request.include_translation is True

    def test_unrecognized_url(self, client, stores):
        resp = client.post("/videos/process", json={"video_url": "https://vimeo.com/1"})
        assert resp.status_code == 400
        stores[2].submit.assert_not_called()

    @pytest.mark.parametrize("duration", [2.9, 31, 0, -5])
    def test_segment_duration_out_of_range(self, client, stores, duration):
        resp = client.post(
            "/videos/process", json={"video_url": VIDEO_URL, "segment_duration": duration}
        )
        assert resp.status_code == 400
        assert "segment_duration" in resp.json()["detail"]

    def test_empty_url_is_schema_violation(self, client):
        resp = client.post("/videos/process", json={"video_url": ""})
        assert resp.status_code == 422

    def test_duplicate_job_conflict(self, client, stores):
        """A second submit for a running video maps to 409."""
        stores[2].submit.side_effect = ValueError("A job for video x is already running")
        resp = client.post("/videos/process", json={"video_url": VIDEO_URL})
        assert resp.status_code == 409
        assert "already running" in resp.json()["detail"]


# ---------------------------------------------------------------------------
# Progress, result, segments, cancel
# ---------------------------------------------------------------------------


class TestProgress:

    def test_latest_progress(self, client, stores):
        progress, _, _ = stores
        record = progress.register(VIDEO_ID, total_segments=3)
        progress.update(record.job_id, status=ProgressStatus.PROCESSING, progress=33, current_segment=2)

        resp = client.get("/videos/{}/progress".format(VIDEO_ID))

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "processing"
        assert body["progress"] == 33
        assert body["current_segment"] == 2
        assert body["total_segments"] == 3
        assert body["job_id"] == record.job_id

    def test_unknown_video(self, client):
        assert client.get("/videos/nothing/progress").status_code == 404


class TestResult:

    def test_stored_result(self, client, stores):
        _stored_result(stores[1])

        resp = client.get("/videos/{}/result".format(VIDEO_ID))

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["title"] == "Conversazione"
        assert [s["id"] for s in body["segments"]] == ["1", "2"]
        assert body["segments"][0]["audio_url"].endswith("_0_8.mp3")
        # Local filesystem paths never leave the server
        assert "audio_path" not in body["segments"][0]

    def test_error_result_is_returned(self, client, stores):
        stores[1].save(PipelineResult.failure("Segment 2 failed after 3 attempts", video_id=VIDEO_ID))

        body = client.get("/videos/{}/result".format(VIDEO_ID)).json()

        assert body["success"] is False
        assert body["error"] == "Segment 2 failed after 3 attempts"

    def test_missing_result(self, client):
        assert client.get("/videos/{}/result".format(VIDEO_ID)).status_code == 404

    def test_unsafe_id(self, client):
        assert client.get("/videos/a..b/result").status_code == 400


class TestSegment:

    def test_single_segment(self, client, stores):
        _stored_result(stores[1])
        resp = client.get("/videos/{}/segments/2".format(VIDEO_ID))
        assert resp.status_code == 200
        assert resp.json()["text"] == "Sono felice"

    def test_unknown_segment(self, client, stores):
        _stored_result(stores[1])
        assert client.get("/videos/{}/segments/9".format(VIDEO_ID)).status_code == 404

    def test_failed_result_has_no_segments(self, client, stores):
        stores[1].save(PipelineResult.failure("boom", video_id=VIDEO_ID))
        assert client.get("/videos/{}/segments/1".format(VIDEO_ID)).status_code == 404


class TestCancel:

    def test_cancel_active_job(self, client, stores):
        stores[2].cancel.return_value = True
        resp = client.delete("/videos/{}/job".format(VIDEO_ID))
        assert resp.status_code == 202
        assert resp.json() == {"video_id": VIDEO_ID, "status": "cancelling"}

    def test_cancel_without_job(self, client):
        assert client.delete("/videos/{}/job".format(VIDEO_ID)).status_code == 404


# ---------------------------------------------------------------------------
# Metadata and captions
# ---------------------------------------------------------------------------


class TestMetadataAndCaptions:

    def test_metadata(self, client, fake_provider_cls):
        with patch.object(app_module, "YouTubeProvider", lambda: fake_provider_cls()):
            resp = client.get("/videos/{}/metadata".format(VIDEO_ID))

        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "Conversazione italiana"
        assert body["duration"] == 120.0

    def test_metadata_failure(self, client, fake_provider_cls, metadata_error):
        provider = fake_provider_cls(metadata_error=metadata_error)
        with patch.object(app_module, "YouTubeProvider", lambda: provider):
            resp = client.get("/videos/{}/metadata".format(VIDEO_ID))
        assert resp.status_code == 502

    def test_captions(self, client, fake_provider_cls):
        provider = fake_provider_cls()
        with patch.object(app_module, "YouTubeProvider", lambda: provider):
            resp = client.get("/videos/{}/captions".format(VIDEO_ID), params={"language": "es"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["format"] == "time_ranges"
        assert body["language"] == "es"
        assert len(body["entries"]) == 3
        assert body["entries"][0] == {"start": 0.0, "end": 4.0, "text": "Ciao, come stai oggi?"}
        assert provider.caption_requests == [(VIDEO_ID, "es")]

    def test_captions_unavailable(self, client, fake_provider_cls):
        provider = fake_provider_cls(captions_error=CaptionFetchError("No captions available"))
        with patch.object(app_module, "YouTubeProvider", lambda: provider):
            resp = client.get("/videos/{}/captions".format(VIDEO_ID))
        assert resp.status_code == 502


# ---------------------------------------------------------------------------
# POST /translate
# ---------------------------------------------------------------------------


class TestTranslate:

    def test_translate(self, client, fake_translator_cls):
        with patch.object(app_module, "create_translator", lambda: fake_translator_cls()):
            resp = client.post("/translate", json={"text": "Ciao", "source_lang": "it", "target_lang": "en"})

        assert resp.status_code == 200
        assert resp.json() == {"translation": "EN: Ciao", "source_lang": "it", "target_lang": "en"}

    def test_translation_failure(self, client, fake_translator_cls):
        with patch.object(app_module, "create_translator", lambda: fake_translator_cls(fail_on="Ciao")):
            resp = client.post("/translate", json={"text": "Ciao"})
        assert resp.status_code == 502

    def test_not_configured(self, client):
        with patch.object(app_module, "create_translator", lambda: None):
            resp = client.post("/translate", json={"text": "Ciao"})
        assert resp.status_code == 503

    @pytest.mark.parametrize("text", ["", "x" * 5001])
    def test_text_length_limits(self, client, text):
        resp = client.post("/translate", json={"text": text})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Health and OpenAPI
# ---------------------------------------------------------------------------


class TestHealthAndSchema:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__}

    def test_openapi_lists_every_endpoint(self, client):
        paths = client.get("/openapi.json").json()["paths"]
        for path in (
            "/videos/process",
            "/videos/{video_id}/progress",
            "/videos/{video_id}/result",
            "/videos/{video_id}/job",
            "/videos/{video_id}/metadata",
            "/videos/{video_id}/captions",
            "/videos/{video_id}/segments/{segment_id}",
            "/translate",
            "/health",
        ):
            assert path in paths
