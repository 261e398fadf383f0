"""
Section filtering between segmentation and extraction.

Drops sections that carry no teaching content (contents pages, copyright,
near-empty fragments) and tags the rest as either material to extract or
reference material (answer keys, glossaries) that is extracted but marked.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Optional

from content_trust.ingest.models import DocumentSection, PedagogicalRole

logger = logging.getLogger(__name__)

ALWAYS_SKIP_TITLES = (
    "contents",
    "table of contents",
    "index",
    "copyright",
    "title page",
    "acknowledgements",
    "acknowledgments",
)

_FIGURE_REF_RE = re.compile(
    r"\b(?:Figure|Fig\.?|Diagram|Table|Chart|Image)\s+(?:\d+(?:\.\d+)*[a-z]?|(?-i:[A-Z])\b)",
    re.IGNORECASE,
)


@dataclass
class FilterSettings:
    skip_title_patterns: list[str] = field(default_factory=list)
    reference_title_patterns: list[str] = field(default_factory=list)
    min_section_chars: int = 50

    @classmethod
    def from_config(cls, cfg: Optional[dict]) -> "FilterSettings":
        """Read the ``sectionFilter`` block of an extraction config."""
        block = (cfg or {}).get("sectionFilter") or {}
        return cls(
            skip_title_patterns=list(block.get("skipTitlePatterns") or []),
            reference_title_patterns=list(block.get("referenceTitlePatterns") or []),
            min_section_chars=int(block.get("minSectionChars", 50)),
        )


@dataclass
class FilterResult:
    sections: list[DocumentSection] = field(default_factory=list)
    skipped: list[DocumentSection] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _normalize_title(title: str) -> str:
    return re.sub(r"\s+", " ", title or "").strip().lower().rstrip(":.")


def _matches_any(title: str, patterns: list[str]) -> Optional[str]:
    """Return the first pattern found in ``title`` (regex, or substring if invalid)."""
    for pattern in patterns:
        try:
            if re.search(pattern, title, re.IGNORECASE):
                return pattern
        except re.error:
            if pattern.lower() in title:
                return pattern
    return None


def detect_figure_refs(text: str) -> list[str]:
    """
    Find figure, diagram and table references such as "Figure 1.2" or "Fig. 3".

    Returns unique references in order of first appearance.
    """
    refs = []
    seen = set()
    for match in _FIGURE_REF_RE.finditer(text or ""):
        ref = re.sub(r"\s+", " ", match.group(0)).strip()
        key = ref.lower()
        if key not in seen:
            seen.add(key)
            refs.append(ref)
    return refs


def filter_sections(
    full_text: str,
    sections: list[DocumentSection],
    settings: Optional[FilterSettings] = None,
) -> FilterResult:
    """
    Filter and tag segmented sections.

    Args:
        full_text: The document text the section offsets refer to
        sections: Sections from the segmenter
        settings: Filter settings (defaults if None)

    Returns:
        FilterResult with surviving sections tagged ``extract`` or
        ``reference``, the skipped sections and one warning per decision
    """
    settings = settings or FilterSettings()
    result = FilterResult()

    for section in sections:
        title = _normalize_title(section.title)
        body = section.text_of(full_text).strip()

        skip_reason = None
        if section.pedagogical_role == PedagogicalRole.META.value:
            skip_reason = "non-content section"
        elif title in ALWAYS_SKIP_TITLES:
            skip_reason = "front/back matter"
        elif _matches_any(title, settings.skip_title_patterns):
            skip_reason = "matches skip pattern"
        elif len(body) < settings.min_section_chars:
            skip_reason = f"shorter than {settings.min_section_chars} chars"

        if skip_reason:
            result.skipped.append(section)
            result.warnings.append(f"Skipped section '{section.title}': {skip_reason}")
            continue

        is_reference = (
            section.has_answer_key
            or section.pedagogical_role == PedagogicalRole.REFERENCE.value
            or _matches_any(title, settings.reference_title_patterns) is not None
        )
        action = "reference" if is_reference else "extract"
        tagged = replace(section, filter_action=action, figure_refs=detect_figure_refs(body))
        result.sections.append(tagged)
        result.warnings.append(f"Section '{section.title}': {action}")

    logger.info(
        f"Section filter: {len(result.sections)} kept, {len(result.skipped)} skipped"
    )
    return result
