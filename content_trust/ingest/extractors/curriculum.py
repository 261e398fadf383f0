"""
Curriculum extraction.

Syllabi are chunked along Learning Outcome boundaries so each LO arrives
with its assessment criteria. Chunks that contain LO/AC markers get a
structural hint appended to the prompt. After extraction, assessment
criteria phrased as commands ("Explain ...", "State ...") are turned into
implied questions.
"""

import logging
import re
from typing import Any, Optional

from content_trust.ingest.chunking import chunk_by_learning_outcomes
from content_trust.ingest.dedup import content_hash
from content_trust.ingest.extractors.base import ChunkResult, ExtractionStrategy
from content_trust.ingest.models import (
    ExtractedAssertion,
    ExtractedQuestion,
    ExtractionContext,
    ExtractionOptions,
    ExtractionOutput,
    QuestionType,
)
from content_trust.prompts import CURRICULUM_STRUCTURE_HINT, format_prompt

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(
    r"\b(?:LO[ \t]*\d+|AC[ \t]*\d+(?:\.\d+)*|Learning[ \t]+Outcome[ \t]*\d+)",
    re.IGNORECASE,
)
_MAX_HINT_MARKERS = 12

# "AC2.3:", "2.3", "LO1 -", "1." at the start of a criterion
_REF_PREFIX_RE = re.compile(
    r"^\s*(?:(?:AC|LO)[ \t]*\d+(?:\.\d+)*|\d+(?:\.\d+)*)[ \t]*[:.)\-–]?\s*",
    re.IGNORECASE,
)

RECALL_VERBS = {"state", "list", "identify", "name", "outline", "recall", "give", "label"}
EXPLAIN_VERBS = {
    "explain", "describe", "evaluate", "analyse", "analyze", "discuss",
    "compare", "justify", "assess", "examine", "critically",
}
DEFINE_VERBS = {"define"}


def find_markers(chunk: str) -> list[str]:
    """Distinct LO/AC markers in a chunk, in order of appearance."""
    markers = []
    seen = set()
    for match in _MARKER_RE.finditer(chunk):
        marker = re.sub(r"\s+", " ", match.group(0)).strip()
        key = marker.upper().replace(" ", "")
        if key not in seen:
            seen.add(key)
            markers.append(marker)
    return markers


def strip_reference_prefix(text: str) -> str:
    return _REF_PREFIX_RE.sub("", text, count=1).strip()


def question_type_for_verb(verb: str) -> Optional[str]:
    """Map a criterion's command verb to a question type; None if unmapped."""
    verb = verb.lower().strip(".,:;")
    if verb in RECALL_VERBS or verb in DEFINE_VERBS:
        return QuestionType.SHORT_ANSWER.value
    if verb in EXPLAIN_VERBS:
        return QuestionType.OPEN.value
    return None


def implied_question(assertion: ExtractedAssertion) -> Optional[ExtractedQuestion]:
    """Turn an assessment criterion into the question it implies."""
    body = strip_reference_prefix(assertion.text)
    if not body:
        return None

    verb = body.split()[0]
    question_type = question_type_for_verb(verb)
    if question_type is None:
        return None

    text = body[0].upper() + body[1:]
    if not text.endswith((".", "?")):
        text += "."

    return ExtractedQuestion(
        text=text,
        question_type=question_type,
        content_hash=content_hash(text),
        learning_outcome_ref=assertion.learning_outcome_ref,
        difficulty=2 if question_type == QuestionType.SHORT_ANSWER.value else 3,
        chapter=assertion.chapter,
        tags=["implied"],
    )


class CurriculumStrategy(ExtractionStrategy):
    """Syllabi and qualification specifications."""

    name = "curriculum"

    def chunk(self, text: str, config: dict) -> list[str]:
        return chunk_by_learning_outcomes(text, config["extraction"]["chunkSize"])

    def build_user_prompt(
        self,
        chunk: str,
        context: ExtractionContext,
        options: ExtractionOptions,
        config: dict,
    ) -> str:
        prompt = super().build_user_prompt(chunk, context, options, config)
        markers = find_markers(chunk)
        if markers:
            prompt += format_prompt(
                CURRICULUM_STRUCTURE_HINT,
                markers=", ".join(markers[:_MAX_HINT_MARKERS]),
            )
        return prompt

    def parse_chunk(
        self,
        data: Any,
        context: ExtractionContext,
        options: ExtractionOptions,
        config: dict,
    ) -> ChunkResult:
        return ChunkResult(assertions=self.parse_assertions(data, config))

    def post_process(self, output: ExtractionOutput, options: ExtractionOptions, config: dict):
        implied = [
            q for q in (
                implied_question(a)
                for a in output.assertions
                if a.category == "assessment_criterion"
            )
            if q is not None
        ]
        if implied:
            logger.debug(f"{options.source_slug}: {len(implied)} implied questions")
        output.questions.extend(implied)
