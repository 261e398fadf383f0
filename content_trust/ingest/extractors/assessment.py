"""Assessment extraction: marking facts plus structured question/answer pairs."""

from typing import Any

from content_trust.ingest.extractors.base import ChunkResult, ExtractionStrategy, items_from
from content_trust.ingest.extractors.questions import parse_questions
from content_trust.ingest.models import ExtractionContext, ExtractionOptions


class AssessmentStrategy(ExtractionStrategy):
    """
    Tests, quizzes and mark schemes.

    Assertions carry mark-scheme points and misconceptions; questions keep
    their difficulty (1-5) and any mark scheme text.
    """

    name = "assessment"

    def parse_chunk(
        self,
        data: Any,
        context: ExtractionContext,
        options: ExtractionOptions,
        config: dict,
    ) -> ChunkResult:
        questions = parse_questions(items_from(data, "questions"))
        for question in questions:
            if "assessment" not in question.tags:
                question.tags.append("assessment")
        return ChunkResult(
            assertions=self.parse_assertions(data, config),
            questions=questions,
        )
