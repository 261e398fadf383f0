"""
Centralized configuration for Content Trust.

All environment-driven settings should be imported from this module.
Extraction behaviour (prompts, categories, pyramid levels) lives in
:mod:`content_trust.extraction_config` instead.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _find_project_root() -> Path:
    """Find project root by looking for pyproject.toml or .git."""
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return current.parent


@dataclass
class Config:
    """Content Trust configuration."""

    # ==========================================================================
    # Paths
    # ==========================================================================
    PROJECT_ROOT: Path = field(default_factory=_find_project_root)

    @property
    def TELEMETRY_LOG_PATH(self) -> Path:
        return Path(
            os.environ.get(
                "TELEMETRY_LOG_PATH",
                str(self.PROJECT_ROOT / "logs" / "completion_calls.jsonl"),
            )
        )

    # ==========================================================================
    # Database
    # ==========================================================================
    @property
    def POSTGRES_DSN(self) -> str:
        return os.environ.get(
            "POSTGRES_DSN",
            "dbname=content_trust user=content_trust host=/var/run/postgresql"
        )

    # ==========================================================================
    # Completion model
    # ==========================================================================
    @property
    def GEMINI_API_KEY(self) -> Optional[str]:
        return os.environ.get("GEMINI_API_KEY")

    @property
    def GEMINI_MODEL(self) -> str:
        return os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")

    @property
    def COMPLETION_MAX_ATTEMPTS(self) -> int:
        return int(os.environ.get("COMPLETION_MAX_ATTEMPTS", "3"))

    @property
    def COMPLETION_BASE_DELAY(self) -> float:
        return float(os.environ.get("COMPLETION_BASE_DELAY", "2.0"))

    # ==========================================================================
    # Processing
    # ==========================================================================
    @property
    def LOG_LEVEL(self) -> str:
        return os.environ.get("LOG_LEVEL", "INFO")

    @property
    def JOB_TTL_SECONDS(self) -> int:
        return int(os.environ.get("JOB_TTL_SECONDS", "3600"))

    # ==========================================================================
    # Document types
    # ==========================================================================
    DOCUMENT_TYPES = (
        "CURRICULUM",
        "TEXTBOOK",
        "WORKSHEET",
        "EXAMPLE",
        "ASSESSMENT",
        "REFERENCE",
        "COMPREHENSION",
        "LESSON_PLAN",
        "POLICY_DOCUMENT",
    )

    # ==========================================================================
    # Validation
    # ==========================================================================
    def validate(self) -> list[str]:
        """Return list of configuration errors."""
        errors = []

        if not self.GEMINI_API_KEY:
            errors.append("GEMINI_API_KEY not set")

        if self.COMPLETION_MAX_ATTEMPTS < 1:
            errors.append(
                f"COMPLETION_MAX_ATTEMPTS must be >= 1, got {self.COMPLETION_MAX_ATTEMPTS}"
            )

        if self.COMPLETION_BASE_DELAY < 0:
            errors.append(
                f"COMPLETION_BASE_DELAY must be >= 0, got {self.COMPLETION_BASE_DELAY}"
            )

        return errors

    def __repr__(self) -> str:
        return (
            f"Config(\n"
            f"  PROJECT_ROOT={self.PROJECT_ROOT}\n"
            f"  POSTGRES_DSN={self.POSTGRES_DSN[:30]}...\n"
            f"  GEMINI_MODEL={self.GEMINI_MODEL}\n"
            f"  COMPLETION_MAX_ATTEMPTS={self.COMPLETION_MAX_ATTEMPTS}\n"
            f")"
        )


# Global config instance
config = Config()


# Convenience exports
POSTGRES_DSN = config.POSTGRES_DSN
GEMINI_API_KEY = config.GEMINI_API_KEY
GEMINI_MODEL = config.GEMINI_MODEL
