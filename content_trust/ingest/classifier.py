"""
Document type classification.

Asks the completion model which kind of teaching document a text is, using
a sample drawn from the start, middle and end of the document so that late
content (answer keys, exercises) informs the decision. Prior human
corrections are embedded as worked examples.

Classification never raises: any failure yields TEXTBOOK with confidence 0
and a reasoning string that says what went wrong.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from content_trust.extraction_config import DEFAULT_CONFIG
from content_trust.ingest.dedup import content_hash
from content_trust.ingest.models import DEFAULT_DOCUMENT_TYPE, DocumentType
from content_trust.llm.gateway import CompletionGateway, ModelParams
from content_trust.llm.json_recovery import recover_json
from content_trust.prompts import (
    CLASSIFICATION_USER_PROMPT,
    FEW_SHOT_EXAMPLE,
    FEW_SHOT_HEADER,
    format_prompt,
)

logger = logging.getLogger(__name__)

START_MARKER = "[START OF DOCUMENT]"
MIDDLE_MARKER = "[... MIDDLE OF DOCUMENT ...]"
END_MARKER = "[... END OF DOCUMENT ...]"


def build_multi_point_sample(text: str, size: int) -> str:
    """
    Sample ``size`` characters from three points of a document.

    40% comes from the start, 30% from around the middle and 30% from the
    end. Text that already fits is returned unchanged.
    """
    if len(text) <= size:
        return text

    start_len = int(size * 0.4)
    middle_len = int(size * 0.3)
    end_len = size - start_len - middle_len

    middle_start = max(start_len, len(text) // 2 - middle_len // 2)
    middle_end = min(middle_start + middle_len, len(text) - end_len)

    return "\n".join(
        [
            START_MARKER,
            text[:start_len],
            MIDDLE_MARKER,
            text[middle_start:middle_end],
            END_MARKER,
            text[len(text) - end_len :],
        ]
    )


@dataclass
class ClassificationResult:
    """Result of document classification."""

    document_type: str
    confidence: float
    reasoning: str
    few_shot_count: int = 0

    def to_dict(self) -> dict:
        return {
            "document_type": self.document_type,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "few_shot_count": self.few_shot_count,
        }


# =============================================================================
# Few-shot examples
# =============================================================================

@dataclass
class FewShotExample:
    """A past classification corrected by a human reviewer."""

    sample: str
    file_name: str
    corrected_type: str
    original_type: Optional[str] = None
    domain_id: Optional[str] = None


class FewShotSource(ABC):
    """Read-only history of corrected classifications."""

    @abstractmethod
    def fetch(self, domain_id: Optional[str], limit: int) -> list[FewShotExample]:
        """
        Return up to ``limit`` corrections, newest first.

        ``domain_id=None`` means corrections from any domain.
        """


class InMemoryFewShotSource(FewShotSource):
    """Few-shot source backed by a list, newest last."""

    def __init__(self, examples: Optional[list[FewShotExample]] = None):
        self.examples = list(examples or [])

    def add(self, example: FewShotExample):
        self.examples.append(example)

    def fetch(self, domain_id: Optional[str], limit: int) -> list[FewShotExample]:
        matches = [
            e for e in reversed(self.examples)
            if domain_id is None or e.domain_id == domain_id
        ]
        return matches[:limit]


def load_few_shot_examples(
    source: Optional[FewShotSource],
    domain_id: Optional[str] = None,
    max_examples: int = 5,
    example_sample_size: int = 500,
    domain_aware: bool = True,
) -> list[FewShotExample]:
    """
    Collect worked examples: domain-scoped first, then global.

    Duplicates are dropped, the list is capped at ``max_examples`` and each
    sample is trimmed to ``example_sample_size`` characters. A failing
    source is logged and yields whatever was collected so far.
    """
    if source is None or max_examples <= 0:
        return []

    collected = []
    try:
        if domain_aware and domain_id:
            collected.extend(source.fetch(domain_id, max_examples))
        if len(collected) < max_examples:
            collected.extend(source.fetch(None, max_examples))
    except Exception as e:
        logger.warning(f"Few-shot lookup failed, continuing without: {e}")

    seen = set()
    examples = []
    for example in collected:
        key = (content_hash(example.sample), example.corrected_type)
        if key in seen:
            continue
        seen.add(key)
        examples.append(
            FewShotExample(
                sample=example.sample[:example_sample_size],
                file_name=example.file_name,
                corrected_type=example.corrected_type,
                original_type=example.original_type,
                domain_id=example.domain_id,
            )
        )
        if len(examples) >= max_examples:
            break

    return examples


def render_few_shot_block(examples: list[FewShotExample]) -> str:
    """Render examples as a block appended to the system prompt."""
    if not examples:
        return ""

    parts = [FEW_SHOT_HEADER]
    for i, example in enumerate(examples, 1):
        note = ""
        if example.original_type and example.original_type != example.corrected_type:
            note = f" (was misclassified as {example.original_type})"
        parts.append(
            format_prompt(
                FEW_SHOT_EXAMPLE,
                index=i,
                file_name=example.file_name,
                sample=example.sample,
                corrected_type=example.corrected_type,
                note=note,
            )
        )
    return "".join(parts)


# =============================================================================
# Classifier
# =============================================================================

class DocumentClassifier:
    """
    Classify documents into one of the configured document types.

    Usage:
        classifier = DocumentClassifier(gateway, few_shot_source=source)
        result = classifier.classify(text, "unit-3.pdf", cfg)
        print(result.document_type, result.confidence)
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        few_shot_source: Optional[FewShotSource] = None,
    ):
        self.gateway = gateway
        self.few_shot_source = few_shot_source

    def classify(
        self,
        text: str,
        file_name: str,
        config: Optional[dict] = None,
        few_shot_examples: Optional[list[FewShotExample]] = None,
        domain_id: Optional[str] = None,
    ) -> ClassificationResult:
        """
        Classify a document.

        Args:
            text: Full document text (sampled internally)
            file_name: Original file name, a strong signal for the model
            config: Resolved extraction config (uses its classification block)
            few_shot_examples: Explicit examples; loaded from the source if None
            domain_id: Domain used to scope few-shot lookup

        Returns:
            ClassificationResult (never raises)
        """
        cls_cfg = (config or DEFAULT_CONFIG).get("classification", {})

        try:
            if not text or not text.strip():
                return self._failed("document has no text")

            if few_shot_examples is None:
                few_shot_examples = self._load_examples(cls_cfg, domain_id)

            sample = build_multi_point_sample(text, cls_cfg.get("sampleSize", 2000))
            system_prompt = cls_cfg["systemPrompt"] + render_few_shot_block(few_shot_examples)
            user_prompt = format_prompt(
                CLASSIFICATION_USER_PROMPT, file_name=file_name, sample=sample
            )

            raw = self.gateway.invoke(
                system_prompt,
                user_prompt,
                call_point="classify",
                model_params=ModelParams.from_llm_config(cls_cfg.get("llmConfig")),
                metadata={"file_name": file_name, "few_shot": len(few_shot_examples)},
            )
            if not raw:
                return self._failed("empty response from model")

            data = recover_json(raw, context=f"classify {file_name}").parsed
            if not isinstance(data, dict):
                return self._failed("response is not a JSON object")

            document_type = DocumentType.normalize(data.get("documentType"))
            if document_type is None:
                return self._failed(f"unknown document type {data.get('documentType')!r}")

            result = ClassificationResult(
                document_type=document_type,
                confidence=_clamp_confidence(data.get("confidence")),
                reasoning=str(data.get("reasoning") or ""),
                few_shot_count=len(few_shot_examples),
            )
            logger.info(
                f"Classified {file_name} as {result.document_type} "
                f"(confidence {result.confidence:.2f})"
            )
            return result

        except Exception as e:
            logger.error(f"Classification of {file_name} failed: {e}")
            return self._failed(str(e))

    def _load_examples(self, cls_cfg: dict, domain_id: Optional[str]) -> list[FewShotExample]:
        few_shot = cls_cfg.get("fewShot") or {}
        if not few_shot.get("enabled", False):
            return []
        return load_few_shot_examples(
            self.few_shot_source,
            domain_id=domain_id,
            max_examples=few_shot.get("maxExamples", 5),
            example_sample_size=few_shot.get("exampleSampleSize", 500),
            domain_aware=few_shot.get("domainAware", True),
        )

    @staticmethod
    def _failed(reason: str) -> ClassificationResult:
        return ClassificationResult(
            document_type=DEFAULT_DOCUMENT_TYPE,
            confidence=0.0,
            reasoning=f"Classification failed: {reason}",
        )


def _clamp_confidence(value) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return max(0.0, min(1.0, confidence))
