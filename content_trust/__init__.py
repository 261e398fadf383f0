"""
Content Trust - educational content extraction pipeline.

Turns unstructured teaching documents into structured knowledge:
- Document type classification with few-shot corrections
- Composite document segmentation into pedagogical sections
- Type-specific chunked extraction of assertions, questions and vocabulary
- Resilient recovery of malformed model JSON
- Content-hash deduplication across chunks and sections
- Pedagogical pyramid structuring of extracted assertions
"""

__version__ = "1.0.0"
