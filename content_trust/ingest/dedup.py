"""
Content hashing and deduplication.

Assertions and questions are keyed on the hash of their normalized text,
vocabulary on the lower-cased term. The first occurrence always wins, so
callers control precedence through ordering.
"""

import hashlib
import re
from dataclasses import dataclass, field
from typing import Callable, Hashable, Iterable, TypeVar

T = TypeVar("T")

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace, trim and lower-case."""
    return _WHITESPACE_RE.sub(" ", text or "").strip().lower()


def content_hash(text: str) -> str:
    """First 16 hex chars of SHA-256 over the normalized text."""
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()[:16]


@dataclass
class DedupResult:
    kept: list = field(default_factory=list)
    removed_count: int = 0


def dedupe(items: Iterable[T], key_fn: Callable[[T], Hashable]) -> DedupResult:
    """Keep the first item for each key, preserving order."""
    seen = set()
    kept = []
    removed = 0
    for item in items:
        key = key_fn(item)
        if key in seen:
            removed += 1
            continue
        seen.add(key)
        kept.append(item)
    return DedupResult(kept=kept, removed_count=removed)


def dedupe_assertions(assertions) -> DedupResult:
    return dedupe(assertions, lambda a: a.content_hash)


def dedupe_questions(questions) -> DedupResult:
    return dedupe(questions, lambda q: q.content_hash)


def dedupe_vocabulary(vocabulary) -> DedupResult:
    return dedupe(vocabulary, lambda v: v.term.strip().lower())
