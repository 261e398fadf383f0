"""
Tests for content hashing and deduplication.
"""

from content_trust.ingest.dedup import (
    content_hash,
    dedupe,
    dedupe_assertions,
    dedupe_vocabulary,
    normalize_text,
)
from content_trust.ingest.models import ExtractedAssertion, ExtractedVocabulary


def _assertion(text, category="fact"):
    return ExtractedAssertion(text=text, category=category, content_hash=content_hash(text))


class TestContentHash:
    """Tests for normalization and hashing."""

    def test_normalize(self):
        assert normalize_text("  The  Cell\n\tWall ") == "the cell wall"
        assert normalize_text(None) == ""

    def test_hash_is_16_hex_chars(self):
        h = content_hash("Osmosis is diffusion of water.")
        assert len(h) == 16
        int(h, 16)

    def test_case_and_whitespace_insensitive(self):
        assert content_hash("  Osmosis is DIFFUSION of water.") == content_hash(
            "osmosis is diffusion of water."
        )

    def test_different_text_different_hash(self):
        assert content_hash("mitosis") != content_hash("meiosis")


class TestDedupe:
    """Tests for first-occurrence-wins deduplication."""

    def test_generic_key(self):
        result = dedupe([1, 2, 3, 4, 5], key_fn=lambda n: n % 2)
        assert result.kept == [1, 2]
        assert result.removed_count == 3

    def test_empty(self):
        result = dedupe([], key_fn=lambda x: x)
        assert result.kept == []
        assert result.removed_count == 0

    def test_assertions_differing_in_case_and_whitespace(self):
        first = _assertion("Water moves by osmosis.")
        second = _assertion("   water MOVES by osmosis.")

        result = dedupe_assertions([first, second])

        assert result.kept == [first]
        assert result.removed_count == 1

    def test_first_occurrence_wins(self):
        a = _assertion("Enzymes are proteins.", category="fact")
        b = _assertion("enzymes are proteins.", category="definition")
        assert dedupe_assertions([b, a]).kept[0].category == "definition"

    def test_vocabulary_keys_on_term(self):
        items = [
            ExtractedVocabulary(term="Habitat", definition="Where an organism lives",
                                content_hash=content_hash("habitat")),
            ExtractedVocabulary(term=" habitat ", definition="A natural home",
                                content_hash=content_hash("habitat 2")),
            ExtractedVocabulary(term="Niche", definition="Role in an ecosystem",
                                content_hash=content_hash("niche")),
        ]
        result = dedupe_vocabulary(items)
        assert [v.term for v in result.kept] == ["Habitat", "Niche"]
        assert result.removed_count == 1
