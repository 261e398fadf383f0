"""Comprehension extraction: passage facts, questions and vocabulary in one call."""

import logging
from typing import Any, Optional

from content_trust.ingest.dedup import content_hash
from content_trust.ingest.extractors.base import ChunkResult, ExtractionStrategy, items_from
from content_trust.ingest.extractors.questions import parse_questions
from content_trust.ingest.models import (
    ExtractedVocabulary,
    ExtractionContext,
    ExtractionOptions,
)

logger = logging.getLogger(__name__)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_vocabulary(items: list) -> list[ExtractedVocabulary]:
    """Vocabulary items need both a term and a definition."""
    vocabulary = []
    for item in items:
        if not isinstance(item, dict):
            continue
        term = _clean(item.get("term") or item.get("word"))
        definition = _clean(item.get("definition") or item.get("meaning"))
        if not term or not definition:
            continue
        vocabulary.append(
            ExtractedVocabulary(
                term=term,
                definition=definition,
                content_hash=content_hash(term),
                part_of_speech=_clean(item.get("partOfSpeech")),
                example=_clean(item.get("example")),
                topic=_clean(item.get("topic")),
            )
        )
    return vocabulary


class ComprehensionStrategy(ExtractionStrategy):
    """Reading passages with questions, vocabulary and answer keys."""

    name = "comprehension"

    def parse_chunk(
        self,
        data: Any,
        context: ExtractionContext,
        options: ExtractionOptions,
        config: dict,
    ) -> ChunkResult:
        return ChunkResult(
            assertions=self.parse_assertions(data, config),
            questions=parse_questions(items_from(data, "questions")),
            vocabulary=parse_vocabulary(items_from(data, "vocabulary")),
        )
