"""Document ingestion: classification, segmentation, chunking and extraction."""

from content_trust.ingest.models import (
    DocumentSection,
    DocumentType,
    ExtractedAssertion,
    ExtractedQuestion,
    ExtractedVocabulary,
    ExtractionOptions,
    ExtractionOutput,
    PedagogicalRole,
    QuestionType,
    SourceDocument,
)
from content_trust.ingest.pipeline import ExtractionPipeline, PipelineResult

__all__ = [
    "DocumentSection",
    "DocumentType",
    "ExtractedAssertion",
    "ExtractedQuestion",
    "ExtractedVocabulary",
    "ExtractionOptions",
    "ExtractionOutput",
    "ExtractionPipeline",
    "PedagogicalRole",
    "PipelineResult",
    "QuestionType",
    "SourceDocument",
]
