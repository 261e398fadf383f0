"""
Tests for extraction job tracking and the batch job.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from batch.extraction_job import ExtractionBatchJob, ExtractionJobRunner, load_document
from batch.job_store import InMemoryJobStore, JobStatus
from content_trust.ingest.models import SourceDocument
from content_trust.ingest.pipeline import ExtractionPipeline

TEXT = "Plants need light to grow. " * 4


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def _assertions(*texts):
    return {"assertions": [{"assertion": t, "category": "fact"} for t in texts]}


class TestInMemoryJobStore:
    """Tests for the job lifecycle store."""

    def test_create_and_get(self):
        store = InMemoryJobStore()
        job = store.create("src-1", "unit.pdf")

        assert job.status == JobStatus.PENDING
        assert job.created_at == job.updated_at
        assert store.get(job.job_id).file_name == "unit.pdf"
        assert store.get("missing") is None
        assert len(store) == 1

    def test_update_bumps_timestamp(self):
        clock = FakeClock()
        store = InMemoryJobStore(clock=clock)
        job = store.create(None, "a.txt")

        clock.advance(5)
        updated = store.update(job.job_id, status=JobStatus.RUNNING, chunks_total=4)

        assert updated.status == JobStatus.RUNNING
        assert updated.chunks_total == 4
        assert updated.updated_at - updated.created_at == timedelta(seconds=5)

    def test_unknown_field_rejected(self):
        store = InMemoryJobStore()
        job = store.create(None, "a.txt")
        with pytest.raises(ValueError):
            store.update(job.job_id, colour="blue")
        with pytest.raises(ValueError):
            store.update(job.job_id, created_at=datetime(2020, 1, 1, tzinfo=timezone.utc))

    def test_missing_job(self):
        with pytest.raises(KeyError):
            InMemoryJobStore().update("nope", status=JobStatus.FAILED)

    def test_snapshots_are_copies(self):
        store = InMemoryJobStore()
        job = store.create(None, "a.txt")
        snapshot = store.get(job.job_id)
        snapshot.warnings.append("local only")
        snapshot.status = JobStatus.FAILED

        fresh = store.get(job.job_id)
        assert fresh.warnings == []
        assert fresh.status == JobStatus.PENDING

    def test_sweep_expired(self):
        clock = FakeClock()
        store = InMemoryJobStore(clock=clock)
        old = store.create(None, "old.txt")
        clock.advance(3000)
        recent = store.create(None, "recent.txt")
        clock.advance(1000)

        assert store.sweep_expired(3600) == 1
        assert store.get(old.job_id) is None
        assert store.get(recent.job_id) is not None

    def test_to_dict(self):
        store = InMemoryJobStore(clock=FakeClock())
        data = store.create("src-1", "a.txt").to_dict()
        assert data["status"] == "pending"
        assert data["created_at"] == "2024-01-01T00:00:00+00:00"
        assert data["started_at"] is None

    def test_terminal_states(self):
        assert JobStatus.SUCCEEDED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert not JobStatus.RUNNING.is_terminal


class TestExtractionJobRunner:
    """Tests for running a document as a tracked job."""

    def test_success(self, fake_gateway, no_sleep):
        store = InMemoryJobStore()
        pipeline = ExtractionPipeline(fake_gateway([_assertions("One.", "Two.")]), sleep=no_sleep)

        job, result = ExtractionJobRunner(pipeline, store).run(
            SourceDocument(text=TEXT, file_name="plants.txt", declared_type="TEXTBOOK", source_id="s1")
        )

        assert job.status == JobStatus.SUCCEEDED
        assert job.source_id == "s1"
        assert job.document_type == "TEXTBOOK"
        assert job.assertion_count == 2
        assert (job.chunks_done, job.chunks_total) == (1, 1)
        assert job.started_at is not None and job.completed_at is not None
        assert result.ok
        assert store.get(job.job_id).status == JobStatus.SUCCEEDED

    def test_unusable_document_fails(self, fake_gateway):
        store = InMemoryJobStore()
        job, result = ExtractionJobRunner(ExtractionPipeline(fake_gateway([])), store).run(
            SourceDocument(text="")
        )
        assert job.status == JobStatus.FAILED
        assert job.error_message == "Empty document"
        assert result is not None

    def test_pipeline_exception_marks_failed(self):
        class BrokenPipeline:
            def run(self, document, **kwargs):
                raise RuntimeError("database went away")

        job, result = ExtractionJobRunner(BrokenPipeline(), InMemoryJobStore()).run(
            SourceDocument(text=TEXT)
        )
        assert job.status == JobStatus.FAILED
        assert job.error_message == "database went away"
        assert result is None


class TestLoadDocument:
    def test_inline_text(self, tmp_path):
        doc = load_document(
            {"text": "Hello", "file_name": "h.txt", "document_type": "WORKSHEET", "domain_id": "esol"},
            tmp_path,
        )
        assert doc.declared_type == "WORKSHEET"
        assert doc.domain_id == "esol"

    def test_relative_path(self, tmp_path):
        (tmp_path / "reading.md").write_text("Week three reading.", encoding="utf-8")
        doc = load_document({"path": "reading.md"}, tmp_path)
        assert doc.text == "Week three reading."
        assert doc.file_name == "reading.md"
        assert doc.format_hint == "markdown"

    def test_needs_text_or_path(self, tmp_path):
        with pytest.raises(ValueError):
            load_document({"file_name": "x.txt"}, tmp_path)
        with pytest.raises(ValueError):
            load_document(["not", "an", "object"], tmp_path)


class TestExtractionBatchJob:
    """Tests for JSONL batch processing."""

    def test_batch(self, tmp_path, fake_gateway, no_sleep):
        input_path = tmp_path / "docs.jsonl"
        input_path.write_text(
            "\n".join([
                json.dumps({"text": TEXT, "file_name": "a.txt", "document_type": "TEXTBOOK"}),
                "{broken json",
                "",
                json.dumps({"text": "  ", "file_name": "empty.txt"}),
            ])
            + "\n"
        )
        output_path = tmp_path / "out" / "results.jsonl"
        pipeline = ExtractionPipeline(fake_gateway([_assertions("Plants need light.")]), sleep=no_sleep)

        counts = ExtractionBatchJob(pipeline).run(input_path, output_path)

        assert counts == {"succeeded": 1, "failed": 2}
        lines = [json.loads(line) for line in output_path.read_text().splitlines()]
        assert len(lines) == 3
        assert lines[0]["job"]["status"] == "succeeded"
        assert lines[0]["result"]["assertions"][0]["assertion"] == "Plants need light."
        assert lines[1]["line"] == 2
        assert lines[2]["job"]["error_message"] == "Empty document"
