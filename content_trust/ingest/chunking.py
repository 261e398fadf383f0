"""
Text chunking for extraction.

Two strategies:
- Size-based chunking that prefers paragraph, then line, then word
  boundaries (used by every document type)
- Learning Outcome chunking for syllabi, which keeps each LO with its
  assessment criteria so the model sees the whole outcome at once
"""

import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 8000

# Minimum distance between two LO boundaries; closer markers are usually
# a heading followed by its own restatement
MIN_BOUNDARY_GAP = 200

LO_BOUNDARY_PATTERNS = [
    # LO1, LO 2:, LO3 -
    re.compile(r"^[ \t]*LO[ \t]*\d+\b", re.MULTILINE),
    # Learning Outcome 1 / Learning outcome 2:
    re.compile(r"^[ \t]*Learning[ \t]+Outcome[ \t]*\d+", re.MULTILINE | re.IGNORECASE),
    # Unit 3 Learning Outcomes
    re.compile(
        r"^[ \t]*Unit[ \t]+\d+[ \t]*[:\-–]?[ \t]*Learning[ \t]+Outcomes?",
        re.MULTILINE | re.IGNORECASE,
    ),
    # ## LO2 Understand ... / ### Learning Outcome 3
    re.compile(
        r"^[ \t]*#{1,6}[ \t]+.*\b(?:LO[ \t]*\d+|Learning[ \t]+Outcome)",
        re.MULTILINE | re.IGNORECASE,
    ),
    # 1. Understand the principles of ... / 2. Be able to ...
    re.compile(r"^[ \t]*\d+\.[ \t]+(?:Understand|Know|Be[ \t]+able[ \t]+to)\b", re.MULTILINE),
]


def _find_split_point(text: str, max_chars: int) -> int:
    """Find where to cut ``text`` so the head is at most ``max_chars``."""
    # Paragraph break, accepted when at least halfway through
    idx = text.rfind("\n\n", 0, max_chars + 2)
    if idx >= max_chars * 0.5:
        return idx

    # Line break
    idx = text.rfind("\n", 0, max_chars + 1)
    if idx >= max_chars * 0.3:
        return idx

    # Word boundary
    idx = text.rfind(" ", 0, max_chars + 1)
    if idx >= max_chars * 0.3:
        return idx

    # Last resort: hard cut
    return max_chars


def chunk_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """
    Split text into chunks of at most ``max_chars`` characters.

    Chunks are never empty. Leading whitespace of each remainder is dropped,
    so joining the chunks reproduces the source up to whitespace at the cuts.

    Args:
        text: Text to split
        max_chars: Maximum chunk size

    Returns:
        Ordered list of chunks
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")
    if not text or not text.strip():
        return []
    if len(text) <= max_chars:
        return [text]

    chunks = []
    remaining = text
    while remaining:
        if len(remaining) <= max_chars:
            chunks.append(remaining)
            break

        split_at = _find_split_point(remaining, max_chars)
        head = remaining[:split_at]
        if head.strip():
            chunks.append(head)
        remaining = remaining[split_at:].lstrip()

    return chunks


def find_learning_outcome_boundaries(text: str) -> list[int]:
    """
    Find line-start offsets of formal Learning Outcome markers.

    Boundaries closer than MIN_BOUNDARY_GAP characters to the previously
    kept boundary are dropped.
    """
    if not text:
        return []

    positions = set()
    for pattern in LO_BOUNDARY_PATTERNS:
        for match in pattern.finditer(text):
            positions.add(match.start())

    boundaries = []
    for pos in sorted(positions):
        if boundaries and pos - boundaries[-1] < MIN_BOUNDARY_GAP:
            continue
        boundaries.append(pos)

    return boundaries


def chunk_by_learning_outcomes(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """
    Chunk a syllabus along Learning Outcome boundaries.

    Falls back to :func:`chunk_text` when fewer than two boundaries exist.
    Consecutive LO units are packed together while they fit; a single unit
    larger than ``max_chars`` is sub-chunked on its own.
    """
    boundaries = find_learning_outcome_boundaries(text)
    if len(boundaries) < 2:
        return chunk_text(text, max_chars)

    cuts = boundaries if boundaries[0] == 0 else [0] + boundaries
    units = [text[start:end] for start, end in zip(cuts, cuts[1:] + [len(text)])]
    logger.debug(f"LO chunking: {len(boundaries)} boundaries, {len(units)} units")

    chunks = []
    current = ""

    def flush():
        nonlocal current
        if current.strip():
            chunks.append(current.strip())
        current = ""

    for unit in units:
        if not unit.strip():
            continue
        if len(unit) > max_chars:
            flush()
            chunks.extend(chunk_text(unit, max_chars))
        elif len(current) + len(unit) <= max_chars:
            current += unit
        else:
            flush()
            current = unit

    flush()
    return chunks
