"""Assertion-only extraction used by every type without a specialist."""

from typing import Any

from content_trust.ingest.extractors.base import ChunkResult, ExtractionStrategy
from content_trust.ingest.models import ExtractionContext, ExtractionOptions


class GenericStrategy(ExtractionStrategy):
    """
    Extract assertions with the type's configured prompt and categories.

    The document type only selects config and labels logs; categories
    outside the configured vocabulary fall back to ``defaultCategory``.
    """

    name = "generic"

    def parse_chunk(
        self,
        data: Any,
        context: ExtractionContext,
        options: ExtractionOptions,
        config: dict,
    ) -> ChunkResult:
        return ChunkResult(assertions=self.parse_assertions(data, config))
