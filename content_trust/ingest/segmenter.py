"""
Composite document segmentation.

Many teaching documents mix a reading passage, exercises, discussion tasks
and an answer key. The segmenter asks the completion model for the ordered
list of sections, each with a short "start text" fingerprint, then resolves
the fingerprints to character offsets in the full text.

Offset resolution is deterministic and never trusts model-supplied
numbers: sections are contiguous, ordered and non-overlapping.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from content_trust.ingest.classifier import build_multi_point_sample
from content_trust.ingest.models import (
    DEFAULT_DOCUMENT_TYPE,
    DocumentSection,
    DocumentType,
    PedagogicalRole,
)
from content_trust.llm.gateway import CompletionGateway
from content_trust.llm.json_recovery import recover_json
from content_trust.prompts import (
    SEGMENTATION_SYSTEM_PROMPT,
    SEGMENTATION_USER_PROMPT,
    format_prompt,
)

logger = logging.getLogger(__name__)

# Below this length a document is treated as a single section without a call
MIN_TEXT_LENGTH = 500

MAX_SEGMENTATION_SAMPLE = 6000

# Fingerprints shorter than this are too ambiguous to search for
MIN_FINGERPRINT_CHARS = 5

SHORT_FINGERPRINT_CHARS = 15


@dataclass
class SegmentationResult:
    is_composite: bool
    sections: list[DocumentSection] = field(default_factory=list)
    fallback_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "is_composite": self.is_composite,
            "sections": [s.to_dict() for s in self.sections],
            "fallback_reason": self.fallback_reason,
        }


def single_section(text: str, file_name: str, reason: Optional[str] = None) -> SegmentationResult:
    """The whole text as one non-composite TEXTBOOK/INPUT section."""
    return SegmentationResult(
        is_composite=False,
        sections=[
            DocumentSection(
                title=file_name,
                start_offset=0,
                end_offset=len(text),
                section_type=DEFAULT_DOCUMENT_TYPE,
                pedagogical_role=PedagogicalRole.INPUT.value,
            )
        ],
        fallback_reason=reason,
    )


def resolve_section_offsets(full_text: str, raw_sections: list[dict]) -> list[DocumentSection]:
    """
    Turn model-proposed sections into offset ranges over ``full_text``.

    Each fingerprint is searched case-insensitively from the end of the
    previous match; on a miss its first 15 characters are tried, and on a
    further miss the section starts at the end of the previous match. The
    first section starts at 0 so any preamble is kept. Each section ends
    where the next begins and zero-length sections are dropped.
    """
    haystack = full_text.lower()
    search_from = 0
    sections = []

    for i, raw in enumerate(raw_sections):
        if not isinstance(raw, dict):
            continue

        fingerprint = str(raw.get("startText") or "").strip().lower()
        start = search_from
        matched_len = 0
        if len(fingerprint) >= MIN_FINGERPRINT_CHARS:
            found = haystack.find(fingerprint, search_from)
            matched_len = len(fingerprint)
            if found < 0:
                short = fingerprint[:SHORT_FINGERPRINT_CHARS]
                found = haystack.find(short, search_from)
                matched_len = len(short)
            if found >= 0:
                start = found
            else:
                logger.debug(f"Section {i + 1} fingerprint not found: {fingerprint[:30]!r}")
                matched_len = 0

        sections.append(
            DocumentSection(
                title=str(raw.get("title") or f"Section {i + 1}").strip(),
                start_offset=start,
                end_offset=len(full_text),
                section_type=DocumentType.normalize(raw.get("sectionType"), DocumentType.TEXTBOOK),
                pedagogical_role=PedagogicalRole.normalize(raw.get("pedagogicalRole")),
                has_questions=raw.get("hasQuestions") is True,
                has_answer_key=raw.get("hasAnswerKey") is True,
            )
        )
        search_from = start + matched_len

    if not sections:
        return []

    sections[0].start_offset = 0
    for current, following in zip(sections, sections[1:]):
        current.end_offset = following.start_offset
    sections[-1].end_offset = len(full_text)

    return [s for s in sections if s.end_offset > s.start_offset]


class DocumentSegmenter:
    """
    Split composite documents into pedagogical sections.

    Usage:
        segmenter = DocumentSegmenter(gateway)
        result = segmenter.segment(text, "week-3-reading.docx")
        for section in result.sections:
            print(section.title, section.pedagogical_role)
    """

    def __init__(self, gateway: CompletionGateway, min_text_length: int = MIN_TEXT_LENGTH):
        self.gateway = gateway
        self.min_text_length = min_text_length

    def segment(self, text: str, file_name: str) -> SegmentationResult:
        """
        Segment a document. Never raises; failures return one section.

        Args:
            text: Full document text
            file_name: Original file name

        Returns:
            SegmentationResult
        """
        if len(text) < self.min_text_length:
            return single_section(text, file_name)

        try:
            sample = build_multi_point_sample(text, MAX_SEGMENTATION_SAMPLE)
            raw = self.gateway.invoke(
                SEGMENTATION_SYSTEM_PROMPT,
                format_prompt(SEGMENTATION_USER_PROMPT, file_name=file_name, sample=sample),
                call_point="segment",
                metadata={"file_name": file_name, "text_length": len(text)},
            )
            if not raw:
                return self._fallback(text, file_name, "empty response from model")

            data = recover_json(raw, context=f"segment {file_name}").parsed
            raw_sections = data.get("sections") if isinstance(data, dict) else None
            if not isinstance(raw_sections, list) or not raw_sections:
                return self._fallback(text, file_name, "no sections in response")

            sections = resolve_section_offsets(text, raw_sections)
            if not sections:
                return self._fallback(text, file_name, "no section could be placed")

            distinct_types = {s.section_type for s in sections}
            is_composite = data.get("isComposite") is True or len(distinct_types) > 1

            logger.info(
                f"Segmented {file_name}: {len(sections)} sections, composite={is_composite}"
            )
            return SegmentationResult(is_composite=is_composite, sections=sections)

        except Exception as e:
            return self._fallback(text, file_name, str(e))

    @staticmethod
    def _fallback(text: str, file_name: str, reason: str) -> SegmentationResult:
        logger.warning(f"Segmentation of {file_name} failed, using single section: {reason}")
        return single_section(text, file_name, reason=reason)
