"""
Batch processing for Content Trust.

Provides:
- Job tracking (create / update / get / sweep expired)
- Sequential JSONL extraction runs
"""

from .job_store import InMemoryJobStore, JobRecord, JobStatus, JobStore
from .extraction_job import ExtractionBatchJob, ExtractionJobRunner

__all__ = [
    "ExtractionBatchJob",
    "ExtractionJobRunner",
    "InMemoryJobStore",
    "JobRecord",
    "JobStatus",
    "JobStore",
]
