"""
Extractor registry.

Specialist strategies cover the types whose output differs in shape or
chunking; every other type uses the generic assertion extractor with its
own configured prompt and categories.
"""

import time
from typing import Callable

from content_trust.ingest.extractors.assessment import AssessmentStrategy
from content_trust.ingest.extractors.base import (
    ChunkResult,
    ExtractionStrategy,
    Extractor,
    run_extraction,
)
from content_trust.ingest.extractors.comprehension import ComprehensionStrategy
from content_trust.ingest.extractors.curriculum import CurriculumStrategy
from content_trust.ingest.extractors.generic import GenericStrategy
from content_trust.ingest.models import DEFAULT_DOCUMENT_TYPE, DocumentType
from content_trust.llm.gateway import CompletionGateway

SPECIALIST_STRATEGIES = {
    DocumentType.CURRICULUM.value: CurriculumStrategy,
    DocumentType.COMPREHENSION.value: ComprehensionStrategy,
    DocumentType.ASSESSMENT.value: AssessmentStrategy,
}


def get_strategy(document_type: str) -> ExtractionStrategy:
    document_type = DocumentType.normalize(document_type) or DEFAULT_DOCUMENT_TYPE
    strategy_cls = SPECIALIST_STRATEGIES.get(document_type, GenericStrategy)
    return strategy_cls(document_type)


def get_extractor(
    document_type: str,
    gateway: CompletionGateway,
    sleep: Callable[[float], None] = time.sleep,
) -> Extractor:
    """Return the extractor for a document type (generic if no specialist)."""
    return Extractor(get_strategy(document_type), gateway, sleep=sleep)


__all__ = [
    "AssessmentStrategy",
    "ChunkResult",
    "ComprehensionStrategy",
    "CurriculumStrategy",
    "ExtractionStrategy",
    "Extractor",
    "GenericStrategy",
    "SPECIALIST_STRATEGIES",
    "get_extractor",
    "get_strategy",
    "run_extraction",
]
