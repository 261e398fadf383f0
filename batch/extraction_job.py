#!/usr/bin/env python3
"""
Batch extraction job.

Runs the extraction pipeline over every document in a JSONL file, one at a
time, tracking each through the job store.

Input format (JSONL), either inline text or a path to a decoded text file:
    {"file_name": "unit-2.txt", "text": "...", "document_type": "CURRICULUM"}
    {"path": "docs/reading-week-3.md", "source_id": "src-42", "domain_id": "esol"}

Output format (JSONL):
    {"job": {...job record...}, "result": {...pipeline result...}}

Usage:
    python -m batch.extraction_job --input docs.jsonl --output results.jsonl
"""

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from batch.job_store import InMemoryJobStore, JobRecord, JobStatus, JobStore
from content_trust.config import config
from content_trust.ingest.models import SourceDocument
from content_trust.ingest.pipeline import ExtractionPipeline, PipelineResult
from content_trust.llm.gateway import CompletionGateway

logger = logging.getLogger(__name__)


class ExtractionJobRunner:
    """
    Run one document through the pipeline as a tracked job.

    Usage:
        runner = ExtractionJobRunner(pipeline, InMemoryJobStore())
        job, result = runner.run(document)
    """

    def __init__(self, pipeline: ExtractionPipeline, store: JobStore):
        self.pipeline = pipeline
        self.store = store

    def run(
        self,
        document: SourceDocument,
        max_assertions: Optional[int] = None,
        system_override: Optional[dict] = None,
        domain_override: Optional[dict] = None,
    ) -> tuple[JobRecord, Optional[PipelineResult]]:
        """
        Process a document, recording progress and outcome in the store.

        Returns:
            (final job record, pipeline result or None if the run raised)
        """
        job = self.store.create(document.source_id, document.file_name)
        self.store.update(
            job.job_id,
            status=JobStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )
        logger.info(f"Job {job.job_id}: started {document.file_name}")

        def on_progress(done: int, total: int, assertions: int):
            self.store.update(
                job.job_id,
                chunks_done=done,
                chunks_total=total,
                assertion_count=assertions,
            )

        try:
            result = self.pipeline.run(
                document,
                system_override=system_override,
                domain_override=domain_override,
                max_assertions=max_assertions,
                on_progress=on_progress,
            )
        except Exception as e:
            logger.error(f"Job {job.job_id} failed: {e}")
            final = self.store.update(
                job.job_id,
                status=JobStatus.FAILED,
                completed_at=datetime.now(timezone.utc),
                error_message=str(e),
            )
            return final, None

        final = self.store.update(
            job.job_id,
            status=JobStatus.SUCCEEDED if result.ok else JobStatus.FAILED,
            completed_at=datetime.now(timezone.utc),
            document_type=result.document_type,
            assertion_count=len(result.assertions),
            question_count=len(result.questions),
            vocabulary_count=len(result.vocabulary),
            warnings=list(result.warnings),
            error_message=result.error,
        )
        logger.info(
            f"Job {job.job_id}: {final.status.value}, {final.assertion_count} assertions"
        )
        return final, result


def load_document(record: dict, base_dir: Path) -> SourceDocument:
    """Build a SourceDocument from one input record."""
    if not isinstance(record, dict):
        raise ValueError("record must be a JSON object")
    text = record.get("text")
    file_name = record.get("file_name")
    if text is None:
        if not record.get("path"):
            raise ValueError("record needs 'text' or 'path'")
        path = Path(record["path"])
        if not path.is_absolute():
            path = base_dir / path
        text = path.read_text(encoding="utf-8")
        file_name = file_name or path.name

    return SourceDocument(
        text=text,
        file_name=file_name or "document.txt",
        declared_type=record.get("document_type"),
        qualification_ref=record.get("qualification_ref"),
        source_id=record.get("source_id"),
        domain_id=record.get("domain_id"),
    )


class ExtractionBatchJob:
    """Process a JSONL file of documents sequentially."""

    def __init__(
        self,
        pipeline: ExtractionPipeline,
        store: Optional[JobStore] = None,
        max_assertions: Optional[int] = None,
    ):
        self.runner = ExtractionJobRunner(pipeline, store or InMemoryJobStore())
        self.max_assertions = max_assertions

    def run(self, input_path: Path, output_path: Path) -> dict[str, int]:
        input_path = Path(input_path)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        counts = {"succeeded": 0, "failed": 0}

        with open(input_path, "r") as infile, open(output_path, "w") as outfile:
            for line_no, line in enumerate(infile, 1):
                if not line.strip():
                    continue
                try:
                    document = load_document(json.loads(line), input_path.parent)
                except (ValueError, OSError) as e:
                    logger.error(f"Line {line_no}: skipped, {e}")
                    outfile.write(json.dumps({"line": line_no, "error": str(e)}) + "\n")
                    counts["failed"] += 1
                    continue

                job, result = self.runner.run(document, max_assertions=self.max_assertions)
                outfile.write(
                    json.dumps({
                        "job": job.to_dict(),
                        "result": result.to_dict() if result else None,
                    })
                    + "\n"
                )
                counts["succeeded" if job.status == JobStatus.SUCCEEDED else "failed"] += 1

        logger.info(
            f"Batch complete: {counts['succeeded']} succeeded, {counts['failed']} failed"
        )
        return counts


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="Batch document extraction job")
    parser.add_argument("--input", required=True, type=Path, help="Input JSONL file")
    parser.add_argument("--output", required=True, type=Path, help="Output JSONL file")
    parser.add_argument("--model", default=None, help="Gemini model (default from config)")
    parser.add_argument("--max-assertions", type=int, default=None, help="Assertion cap per document")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    pipeline = ExtractionPipeline(CompletionGateway(model=args.model))
    job = ExtractionBatchJob(pipeline, max_assertions=args.max_assertions)
    counts = job.run(args.input, args.output)
    return 0 if counts["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
