"""
Extraction job tracking.

A job follows one document through the pipeline: PENDING -> RUNNING ->
SUCCEEDED | FAILED. Stores are shared between the request layer and the
worker, so the in-memory store guards every access with a lock.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Status of an extraction job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRecord:
    """State of one extraction job."""

    job_id: str
    source_id: Optional[str]
    file_name: str
    status: JobStatus = JobStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    document_type: Optional[str] = None
    chunks_done: int = 0
    chunks_total: int = 0
    assertion_count: int = 0
    question_count: int = 0
    vocabulary_count: int = 0
    warnings: list[str] = field(default_factory=list)
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, JobStatus):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, list):
                value = list(value)
            data[f.name] = value
        return data


_UPDATABLE = {f.name for f in fields(JobRecord)} - {"job_id", "created_at"}


class JobStore(ABC):
    """Job lifecycle storage."""

    @abstractmethod
    def create(self, source_id: Optional[str], file_name: str) -> JobRecord:
        """Create a PENDING job."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[JobRecord]:
        """Return a snapshot of the job, or None."""

    @abstractmethod
    def update(self, job_id: str, **changes) -> JobRecord:
        """Apply field changes and return the new snapshot."""

    @abstractmethod
    def sweep_expired(self, ttl_seconds: int) -> int:
        """Remove jobs not updated within ``ttl_seconds``; returns how many."""


class InMemoryJobStore(JobStore):
    """
    Process-local job store.

    Usage:
        store = InMemoryJobStore()
        job = store.create("src-1", "unit-3.pdf")
        store.update(job.job_id, status=JobStatus.RUNNING)
        store.sweep_expired(config.JOB_TTL_SECONDS)
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._jobs: dict[str, JobRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def create(self, source_id: Optional[str], file_name: str) -> JobRecord:
        now = self._clock()
        job = JobRecord(
            job_id=str(uuid.uuid4()),
            source_id=source_id,
            file_name=file_name,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job.job_id] = job
            return replace(job, warnings=list(job.warnings))

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job, warnings=list(job.warnings)) if job else None

    def update(self, job_id: str, **changes) -> JobRecord:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError(f"Job not found: {job_id}")
            for name, value in changes.items():
                setattr(job, name, value)
            job.updated_at = self._clock()
            return replace(job, warnings=list(job.warnings))

    def sweep_expired(self, ttl_seconds: int) -> int:
        cutoff = self._clock() - timedelta(seconds=ttl_seconds)
        with self._lock:
            expired = [jid for jid, job in self._jobs.items() if job.updated_at < cutoff]
            for job_id in expired:
                del self._jobs[job_id]

        if expired:
            logger.info(f"Swept {len(expired)} expired jobs")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
