"""
End-to-end extraction pipeline for Content Trust.

Orchestrates: classification -> config resolution -> segmentation ->
section filtering -> per-section extraction -> cross-section dedup ->
question and vocabulary linking.
Runs strictly sequentially: one completion call at a time.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from content_trust.extraction_config import resolve_extraction_config
from content_trust.ingest.classifier import (
    ClassificationResult,
    DocumentClassifier,
    FewShotSource,
)
from content_trust.ingest.dedup import dedupe_assertions, dedupe_questions, dedupe_vocabulary
from content_trust.ingest.extractors import get_extractor
from content_trust.ingest.linking import LinkingResult, LinkingSettings, link_content
from content_trust.ingest.models import (
    DocumentSection,
    DocumentType,
    ExtractedAssertion,
    ExtractedQuestion,
    ExtractedVocabulary,
    ExtractionOptions,
    ExtractionOutput,
    SourceDocument,
)
from content_trust.ingest.section_filter import FilterSettings, detect_figure_refs, filter_sections
from content_trust.ingest.segmenter import DocumentSegmenter, SegmentationResult
from content_trust.llm.gateway import CompletionGateway

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result of running the pipeline over one document."""

    ok: bool = True
    error: Optional[str] = None
    source_slug: str = ""
    document_type: Optional[str] = None
    classification: Optional[ClassificationResult] = None
    segmentation: Optional[SegmentationResult] = None
    assertions: list[ExtractedAssertion] = field(default_factory=list)
    questions: list[ExtractedQuestion] = field(default_factory=list)
    vocabulary: list[ExtractedVocabulary] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    linking: Optional[LinkingResult] = None
    failed_chunks: int = 0
    chunks_processed: int = 0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "error": self.error,
            "source_slug": self.source_slug,
            "document_type": self.document_type,
            "classification": self.classification.to_dict() if self.classification else None,
            "segmentation": self.segmentation.to_dict() if self.segmentation else None,
            "assertions": [a.to_dict() for a in self.assertions],
            "questions": [q.to_dict() for q in self.questions],
            "vocabulary": [v.to_dict() for v in self.vocabulary],
            "warnings": list(self.warnings),
            "linking": self.linking.to_dict() if self.linking else None,
            "failed_chunks": self.failed_chunks,
            "chunks_processed": self.chunks_processed,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }


def _unique(values: list[str]) -> list[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def enrich_from_section(section: DocumentSection, section_text: str, output: ExtractionOutput):
    """Tag a section's extracted items with where they came from."""
    section_tags = [f"role:{section.pedagogical_role}"]
    if section.has_answer_key:
        section_tags.append("has-answers")
    if section.filter_action == "reference":
        section_tags.append("reference-content")

    section_refs = _unique(list(section.figure_refs) + detect_figure_refs(section_text))

    for assertion in output.assertions:
        assertion.chapter = assertion.chapter or section.title
        refs = _unique(list(assertion.figure_refs) + section_refs)
        assertion.figure_refs = refs
        assertion.tags = _unique(assertion.tags + section_tags + [f"fig:{ref}" for ref in refs])

    for question in output.questions:
        question.chapter = question.chapter or section.title
        question.tags = _unique(question.tags + section_tags)


class ExtractionPipeline:
    """
    Document-to-knowledge pipeline.

    Usage:
        pipeline = ExtractionPipeline(CompletionGateway())
        result = pipeline.run(SourceDocument(text=text, file_name="unit-2.pdf"))
        print(result.document_type, len(result.assertions))
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        classifier: Optional[DocumentClassifier] = None,
        segmenter: Optional[DocumentSegmenter] = None,
        few_shot_source: Optional[FewShotSource] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the pipeline.

        Args:
            gateway: Completion gateway shared by every stage
            classifier: Classifier (built from gateway if None)
            segmenter: Segmenter (built from gateway if None)
            few_shot_source: Correction history for classification
            sleep: Sleep function for chunk retries
        """
        self.gateway = gateway
        self.classifier = classifier or DocumentClassifier(gateway, few_shot_source=few_shot_source)
        self.segmenter = segmenter or DocumentSegmenter(gateway)
        self.sleep = sleep

    def run(
        self,
        document: SourceDocument,
        system_override: Optional[dict] = None,
        domain_override: Optional[dict] = None,
        max_assertions: Optional[int] = None,
        on_progress: Optional[Callable[[int, int, int], None]] = None,
    ) -> PipelineResult:
        """
        Extract assertions, questions and vocabulary from a document.

        Args:
            document: Decoded source document
            system_override: Deployment-wide config overrides
            domain_override: Domain config overrides
            max_assertions: Per-extraction assertion cap (config default if None)
            on_progress: Called as on_progress(done, total, assertions_so_far)

        Returns:
            PipelineResult; ok=False only for unusable input

        Raises:
            ConfigurationError: if the resolved config is invalid
        """
        start_time = time.time()
        result = PipelineResult(source_slug=document.slug)

        if not document.text or not document.text.strip():
            result.ok = False
            result.error = "Empty document"
            return result

        # 1. Document type: declared, else classified
        declared = DocumentType.normalize(document.declared_type)
        if declared:
            result.document_type = declared
        else:
            base_config = resolve_extraction_config(None, system_override, domain_override)
            result.classification = self.classifier.classify(
                document.text,
                document.file_name,
                base_config,
                domain_id=document.domain_id,
            )
            result.document_type = result.classification.document_type

        config = resolve_extraction_config(result.document_type, system_override, domain_override)

        # 2. Segmentation
        result.segmentation = self.segmenter.segment(document.text, document.file_name)
        if result.segmentation.fallback_reason:
            result.warnings.append(
                f"Segmentation fell back to a single section: {result.segmentation.fallback_reason}"
            )

        # 3. Extraction
        if result.segmentation.is_composite and len(result.segmentation.sections) > 1:
            self._run_segmented(document, result, config, system_override,
                                domain_override, max_assertions, on_progress)
        else:
            options = ExtractionOptions(
                source_slug=document.slug,
                source_id=document.source_id,
                document_type=result.document_type,
                qualification_ref=document.qualification_ref,
                max_assertions=max_assertions,
                on_chunk_done=on_progress,
            )
            extractor = get_extractor(result.document_type, self.gateway, sleep=self.sleep)
            output = extractor.extract(document.text, options, config)
            result.assertions = output.assertions
            result.questions = output.questions
            result.vocabulary = output.vocabulary
            result.warnings.extend(output.warnings)
            result.failed_chunks = output.failed_chunks
            result.chunks_processed = output.chunks_processed

        # 4. Link questions and vocabulary to their assertions
        settings = LinkingSettings.from_config(config)
        if result.ok and settings.enabled:
            result.linking = link_content(
                result.assertions, result.questions, result.vocabulary, settings
            )
            result.warnings.extend(result.linking.warnings)

        result.elapsed_seconds = time.time() - start_time
        logger.info(
            f"Pipeline {result.source_slug}: {result.document_type}, "
            f"{len(result.assertions)} assertions, {len(result.questions)} questions, "
            f"{len(result.vocabulary)} terms in {result.elapsed_seconds:.1f}s"
        )
        return result

    def _run_segmented(
        self,
        document: SourceDocument,
        result: PipelineResult,
        config: dict,
        system_override: Optional[dict],
        domain_override: Optional[dict],
        max_assertions: Optional[int],
        on_progress: Optional[Callable[[int, int, int], None]],
    ):
        """Extract each surviving section with its own type, then dedupe across sections."""
        filtered = filter_sections(
            document.text,
            result.segmentation.sections,
            FilterSettings.from_config(config),
        )
        result.warnings.extend(filtered.warnings)

        if not filtered.sections:
            result.ok = False
            result.error = "No extractable sections after filtering"
            return

        assertions = []
        questions = []
        vocabulary = []
        total = len(filtered.sections)

        for index, section in enumerate(filtered.sections):
            section_text = section.text_of(document.text)
            if not section_text.strip():
                continue

            section_config = resolve_extraction_config(
                section.section_type, system_override, domain_override
            )
            options = ExtractionOptions(
                source_slug=f"{document.slug}/{section.title}",
                source_id=document.source_id,
                document_type=section.section_type,
                qualification_ref=document.qualification_ref,
                max_assertions=max_assertions,
            )
            extractor = get_extractor(section.section_type, self.gateway, sleep=self.sleep)
            output = extractor.extract(section_text, options, section_config)

            enrich_from_section(section, section_text, output)
            assertions.extend(output.assertions)
            questions.extend(output.questions)
            vocabulary.extend(output.vocabulary)
            result.warnings.extend(f"[{section.title}] {w}" for w in output.warnings)
            result.failed_chunks += output.failed_chunks
            result.chunks_processed += output.chunks_processed

            if on_progress:
                on_progress(index + 1, total, len(assertions))

        deduped = dedupe_assertions(assertions)
        if deduped.removed_count:
            result.warnings.append(
                f"Removed {deduped.removed_count} duplicate assertions across sections"
            )
        result.assertions = deduped.kept
        result.questions = dedupe_questions(questions).kept
        result.vocabulary = dedupe_vocabulary(vocabulary).kept
