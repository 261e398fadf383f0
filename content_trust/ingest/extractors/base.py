"""
Shared extraction loop and strategy base class.

Every document type runs the same loop: chunk the text, send each chunk to
the completion model (with a chunk-level retry on top of the gateway's own),
parse the JSON, accumulate, stop once the assertion limit is reached, then
deduplicate once. Strategies only decide how to chunk, what to ask and how
to read the answer.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from content_trust.exceptions import CompletionError, ConfigurationError, ContentTrustError
from content_trust.extraction_config import get_category_ids
from content_trust.ingest.chunking import chunk_text
from content_trust.ingest.dedup import (
    content_hash,
    dedupe_assertions,
    dedupe_questions,
    dedupe_vocabulary,
)
from content_trust.ingest.models import (
    ExtractedAssertion,
    ExtractedQuestion,
    ExtractedVocabulary,
    ExtractionContext,
    ExtractionOptions,
    ExtractionOutput,
)
from content_trust.llm.gateway import CompletionGateway, ModelParams
from content_trust.llm.json_recovery import recover_json
from content_trust.prompts import EXTRACTION_USER_PROMPT, format_prompt

logger = logging.getLogger(__name__)

MAX_CHUNK_ATTEMPTS = 3
CHUNK_RETRY_BASE_DELAY = 2.0

# Documents above this many chunks get a slowness warning
LARGE_DOCUMENT_CHUNKS = 20

# Malformed or missing output; anything else is a bug and propagates
_CHUNK_ERRORS = (ContentTrustError, ValueError, TypeError, KeyError, AttributeError)


@dataclass
class ChunkResult:
    assertions: list[ExtractedAssertion] = field(default_factory=list)
    questions: list[ExtractedQuestion] = field(default_factory=list)
    vocabulary: list[ExtractedVocabulary] = field(default_factory=list)


# =============================================================================
# Item parsing helpers
# =============================================================================

def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _str_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def parse_assertion_item(
    item: Any,
    valid_categories: set[str],
    default_category: str,
) -> Optional[ExtractedAssertion]:
    """Build an assertion from one model item; None if it has no text."""
    if isinstance(item, str):
        item = {"assertion": item}
    if not isinstance(item, dict):
        return None

    text = _optional_str(item.get("assertion") or item.get("text"))
    if not text:
        return None

    category = item.get("category")
    if category not in valid_categories:
        category = default_category

    relevance = item.get("examRelevance")
    if isinstance(relevance, bool) or not isinstance(relevance, (int, float)):
        relevance = None
    else:
        relevance = max(0.0, min(1.0, float(relevance)))

    return ExtractedAssertion(
        text=text,
        category=category,
        content_hash=content_hash(text),
        chapter=_optional_str(item.get("chapter")),
        section=_optional_str(item.get("section")),
        page_ref=_optional_str(item.get("pageRef")),
        tags=_str_list(item.get("tags")),
        valid_until=_optional_str(item.get("validUntil")),
        tax_year=_optional_str(item.get("taxYear")),
        exam_relevance=relevance,
        learning_outcome_ref=_optional_str(item.get("learningOutcomeRef")),
        figure_refs=_str_list(item.get("figureRefs")),
    )


def items_from(data: Any, key: str) -> list:
    """Items under ``key`` of an object response, or the array itself."""
    if isinstance(data, list):
        return data if key == "assertions" else []
    if isinstance(data, dict):
        items = data.get(key)
        return items if isinstance(items, list) else []
    raise ValueError(f"Expected JSON array or object, got {type(data).__name__}")


# =============================================================================
# Strategy
# =============================================================================

class ExtractionStrategy(ABC):
    """
    How one family of document types is chunked, prompted and parsed.

    Subclasses implement :meth:`parse_chunk`; the other hooks have generic
    defaults.
    """

    name = "generic"

    def __init__(self, document_type: str):
        self.document_type = document_type

    @property
    def call_point(self) -> str:
        return f"extract.{self.name}"

    def chunk(self, text: str, config: dict) -> list[str]:
        return chunk_text(text, config["extraction"]["chunkSize"])

    def system_prompt(self, config: dict) -> str:
        return config["extraction"]["systemPrompt"]

    def build_user_prompt(
        self,
        chunk: str,
        context: ExtractionContext,
        options: ExtractionOptions,
        config: dict,
    ) -> str:
        categories = config["extraction"]["categories"]
        focus = ""
        if context.focus_chapters:
            focus = f"Focus on: {', '.join(context.focus_chapters)}\n"
        return format_prompt(
            EXTRACTION_USER_PROMPT,
            qualification=f"{context.qualification_ref} " if context.qualification_ref else "",
            document_label=self.document_type.lower().replace("_", " "),
            categories="\n".join(f"- {c['id']}: {c.get('description', '')}" for c in categories),
            focus=focus,
            chunk_number=context.chunk_index + 1,
            total_chunks=context.total_chunks,
            chunk=chunk,
        )

    @abstractmethod
    def parse_chunk(
        self,
        data: Any,
        context: ExtractionContext,
        options: ExtractionOptions,
        config: dict,
    ) -> ChunkResult:
        """Turn one parsed model response into extracted items."""

    def post_process(self, output: ExtractionOutput, options: ExtractionOptions, config: dict):
        """Hook run on the deduplicated output before questions are deduplicated."""
        return None

    def parse_assertions(self, data: Any, config: dict) -> list[ExtractedAssertion]:
        extraction = config["extraction"]
        valid = set(get_category_ids(config))
        default = extraction.get("defaultCategory", "fact")
        assertions = []
        for item in items_from(data, "assertions"):
            assertion = parse_assertion_item(item, valid, default)
            if assertion is not None:
                assertions.append(assertion)
        return assertions


# =============================================================================
# Shared loop
# =============================================================================

def _extract_chunk(
    strategy: ExtractionStrategy,
    chunk: str,
    context: ExtractionContext,
    options: ExtractionOptions,
    config: dict,
    gateway: CompletionGateway,
    sleep: Callable[[float], None],
    max_attempts: int,
    base_delay: float,
) -> Optional[ChunkResult]:
    """Extract one chunk with retries; None when every attempt failed."""
    system_prompt = strategy.system_prompt(config)
    user_prompt = strategy.build_user_prompt(chunk, context, options, config)
    params = ModelParams.from_llm_config(config["extraction"].get("llmConfig"))
    label = f"{options.source_slug} chunk {context.chunk_index + 1}/{context.total_chunks}"

    for attempt in range(max_attempts):
        try:
            raw = gateway.invoke(
                system_prompt,
                user_prompt,
                call_point=strategy.call_point,
                model_params=params,
                metadata={
                    "source_slug": options.source_slug,
                    "chunk_index": context.chunk_index,
                    "chunk_attempt": attempt + 1,
                },
            )
            if not raw:
                raise CompletionError("empty completion", call_point=strategy.call_point)

            data = recover_json(raw, context=label).parsed
            return strategy.parse_chunk(data, context, options, config)

        except ConfigurationError:
            raise
        except _CHUNK_ERRORS as e:
            if attempt == max_attempts - 1:
                logger.error(f"[{label}] failed after {max_attempts} attempts: {e}")
                return None
            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"[{label}] attempt {attempt + 1} failed, retrying in {delay:.1f}s: {e}"
            )
            sleep(delay)

    return None


def run_extraction(
    strategy: ExtractionStrategy,
    text: str,
    options: ExtractionOptions,
    config: dict,
    gateway: CompletionGateway,
    sleep: Callable[[float], None] = time.sleep,
    max_chunk_attempts: int = MAX_CHUNK_ATTEMPTS,
    base_delay: float = CHUNK_RETRY_BASE_DELAY,
) -> ExtractionOutput:
    """
    Run the chunked extraction loop for one text.

    Args:
        strategy: Strategy for the document type
        text: Text to extract from
        options: Caller options (limit, progress callback, context)
        config: Resolved extraction config
        gateway: Completion gateway
        sleep: Sleep function for chunk retries
        max_chunk_attempts: Attempts per chunk
        base_delay: Chunk retry backoff base in seconds

    Returns:
        ExtractionOutput; failed chunks are counted and warned, not raised
    """
    output = ExtractionOutput()
    if not text or not text.strip():
        output.warnings.append("Empty text, nothing to extract")
        return output

    chunks = strategy.chunk(text, config)
    total = len(chunks)
    if total > LARGE_DOCUMENT_CHUNKS:
        output.warnings.append(
            f"Large document split into {total} chunks, extraction may be slow"
        )

    limit = options.max_assertions or config["extraction"]["maxAssertionsPerDocument"]
    logger.info(
        f"Extracting {options.source_slug} ({strategy.document_type}): "
        f"{total} chunks, limit {limit}"
    )

    assertions = []
    questions = []
    vocabulary = []

    for index, chunk in enumerate(chunks):
        if len(assertions) >= limit:
            break

        context = ExtractionContext(
            chunk_index=index,
            total_chunks=total,
            source_id=options.source_id,
            qualification_ref=options.qualification_ref,
            focus_chapters=tuple(options.focus_chapters or ()),
        )
        result = _extract_chunk(
            strategy, chunk, context, options, config, gateway,
            sleep, max_chunk_attempts, base_delay,
        )
        output.chunks_processed += 1

        if result is None:
            output.failed_chunks += 1
        else:
            assertions.extend(result.assertions)
            questions.extend(result.questions)
            vocabulary.extend(result.vocabulary)

        if options.on_chunk_done:
            options.on_chunk_done(index + 1, total, len(assertions))

    if output.failed_chunks:
        plural = "s" if output.failed_chunks > 1 else ""
        output.warnings.append(
            f"{output.failed_chunks} chunk{plural} failed extraction (type: {strategy.document_type})"
        )

    if len(assertions) >= limit:
        output.warnings.append(
            f"Reached assertion limit ({limit}). Document may have more content."
        )

    deduped = dedupe_assertions(assertions)
    if deduped.removed_count:
        output.warnings.append(f"Removed {deduped.removed_count} duplicate assertions")
    output.assertions = deduped.kept[:limit]
    output.questions = questions
    output.vocabulary = vocabulary

    strategy.post_process(output, options, config)

    deduped_questions = dedupe_questions(output.questions)
    if deduped_questions.removed_count:
        output.warnings.append(f"Removed {deduped_questions.removed_count} duplicate questions")
    output.questions = deduped_questions.kept

    deduped_vocab = dedupe_vocabulary(output.vocabulary)
    if deduped_vocab.removed_count:
        output.warnings.append(f"Removed {deduped_vocab.removed_count} duplicate vocabulary terms")
    output.vocabulary = deduped_vocab.kept

    logger.info(
        f"Extracted {options.source_slug}: {len(output.assertions)} assertions, "
        f"{len(output.questions)} questions, {len(output.vocabulary)} terms, "
        f"{output.failed_chunks}/{total} chunks failed"
    )
    return output


class Extractor:
    """
    A strategy bound to a gateway.

    Usage:
        extractor = get_extractor("WORKSHEET", gateway)
        output = extractor.extract(text, ExtractionOptions(source_slug="ws-1"), cfg)
    """

    def __init__(
        self,
        strategy: ExtractionStrategy,
        gateway: CompletionGateway,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.strategy = strategy
        self.gateway = gateway
        self.sleep = sleep

    @property
    def document_type(self) -> str:
        return self.strategy.document_type

    def extract(self, text: str, options: ExtractionOptions, config: dict) -> ExtractionOutput:
        return run_extraction(self.strategy, text, options, config, self.gateway, sleep=self.sleep)
