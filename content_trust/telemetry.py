"""
Completion telemetry for Content Trust.

Logs one JSONL record per completion attempt (call point, attempt number,
latency, outcome) for debugging retry behaviour and model latency.

Enable with: CONTENT_TRUST_TELEMETRY=1
"""

import json
import logging
import os
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from content_trust.config import config

logger = logging.getLogger(__name__)


def is_telemetry_enabled() -> bool:
    """Check if telemetry is enabled via environment variable."""
    return os.environ.get("CONTENT_TRUST_TELEMETRY", "0") == "1"


@dataclass
class CompletionTelemetry:
    """Telemetry data for a single completion attempt."""

    # Identifiers
    record_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    # Call info
    call_point: str = ""
    model: str = ""
    attempt: int = 0

    # Outcome
    success: bool = False
    latency_ms: float = 0.0
    response_chars: int = 0
    error: Optional[str] = None

    # Caller-supplied context (source id, chunk index, ...)
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return asdict(self)


def log_completion_attempt(
    call_point: str,
    attempt: int,
    latency_ms: float,
    success: bool,
    model: str = "",
    response_chars: int = 0,
    error: Optional[str] = None,
    metadata: Optional[dict] = None,
    log_path: Path = None,
) -> Optional[CompletionTelemetry]:
    """
    Record one completion attempt.

    Returns the record when telemetry is enabled, otherwise None.
    Write failures are logged and never interrupt the caller.
    """
    if not is_telemetry_enabled():
        return None

    record = CompletionTelemetry(
        call_point=call_point,
        model=model,
        attempt=attempt,
        success=success,
        latency_ms=round(latency_ms, 2),
        response_chars=response_chars,
        error=error,
        metadata=dict(metadata or {}),
    )

    log_path = log_path or config.TELEMETRY_LOG_PATH
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as f:
            json.dump(record.to_dict(), f, default=str)
            f.write("\n")
        logger.debug(f"Telemetry logged: {record.record_id}")
    except OSError as e:
        logger.warning(f"Failed to write telemetry: {e}")

    return record


def read_telemetry_logs(
    log_path: Path = None,
    call_point: str = None,
    limit: int = 100,
) -> list[dict]:
    """
    Read telemetry records from the JSONL file.

    Args:
        log_path: Path to log file (default: config.TELEMETRY_LOG_PATH)
        call_point: Optional filter by call point
        limit: Maximum number of records to return

    Returns:
        List of record dicts
    """
    log_path = log_path or config.TELEMETRY_LOG_PATH

    if not log_path.exists():
        return []

    results = []
    with open(log_path, "r") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if call_point and data.get("call_point") != call_point:
                continue
            results.append(data)
            if len(results) >= limit:
                break

    return results
