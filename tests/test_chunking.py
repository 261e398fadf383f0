"""
Tests for text chunking functions.
"""

import re

import pytest

from content_trust.ingest.chunking import (
    _find_split_point,
    chunk_by_learning_outcomes,
    chunk_text,
    find_learning_outcome_boundaries,
)


def _squash(text):
    return re.sub(r"\s+", "", text)


class TestSplitPoint:
    """Tests for boundary selection."""

    def test_prefers_paragraph_break(self):
        text = "a" * 60 + "\n\n" + "b" * 60
        assert _find_split_point(text, 100) == 60

    def test_paragraph_break_too_early_uses_line(self):
        text = "a" * 20 + "\n\n" + "b" * 30 + "\n" + "c" * 80
        assert _find_split_point(text, 100) == 52

    def test_word_boundary(self):
        text = "word " * 40
        split = _find_split_point(text, 100)
        assert split <= 100
        assert text[split] == " "

    def test_hard_cut(self):
        assert _find_split_point("x" * 500, 100) == 100


class TestChunkText:
    """Tests for size-based chunking."""

    def test_empty_input(self):
        """Empty input should return empty list."""
        assert chunk_text("") == []
        assert chunk_text("   \n ") == []
        assert chunk_text(None) == []

    def test_short_text_single_chunk(self):
        assert chunk_text("short text", max_chars=100) == ["short text"]

    def test_invalid_max_chars(self):
        with pytest.raises(ValueError):
            chunk_text("text", max_chars=0)

    def test_paragraph_document_three_chunks(self):
        """20,000-char document of paragraphs at 8,000 per chunk."""
        paragraphs = ["p" * 998 for _ in range(20)]
        text = "\n\n".join(paragraphs)

        chunks = chunk_text(text, max_chars=8000)

        assert len(chunks) == 3
        assert all(len(c) <= 8000 for c in chunks)

    def test_unbroken_text_hard_cuts(self):
        chunks = chunk_text("x" * 20000, max_chars=8000)
        assert [len(c) for c in chunks] == [8000, 8000, 4000]

    def test_chunks_reconstruct_source(self, sample_textbook_text):
        chunks = chunk_text(sample_textbook_text, max_chars=300)

        assert len(chunks) > 1
        assert all(c.strip() for c in chunks)
        assert _squash("".join(chunks)) == _squash(sample_textbook_text)

    def test_no_chunk_starts_with_whitespace(self, sample_textbook_text):
        chunks = chunk_text(sample_textbook_text, max_chars=250)
        assert all(not c[0].isspace() for c in chunks[1:])


class TestLearningOutcomeBoundaries:
    """Tests for LO marker detection."""

    def test_detects_lo_markers(self, sample_curriculum_text):
        boundaries = find_learning_outcome_boundaries(sample_curriculum_text)
        assert len(boundaries) == 3
        for pos in boundaries:
            assert sample_curriculum_text[pos:].startswith("LO")

    def test_close_markers_collapsed(self):
        text = "LO1 Understand safety\nLO1 (restated)\n" + "detail " * 50
        assert len(find_learning_outcome_boundaries(text)) == 1

    @pytest.mark.parametrize("line", [
        "Learning Outcome 2: Know the law",
        "## LO3 Evaluate service",
        "2. Be able to plan a session",
        "Unit 4 Learning Outcomes",
    ])
    def test_marker_forms(self, line):
        text = "x" * 300 + "\n" + line + "\n" + "y" * 300
        assert find_learning_outcome_boundaries(text) == [301]

    def test_no_markers(self):
        assert find_learning_outcome_boundaries("Plain prose about fractions.") == []


class TestChunkByLearningOutcomes:
    """Tests for LO-aware chunking."""

    def test_packs_outcomes_into_one_chunk_when_they_fit(self, sample_curriculum_text):
        chunks = chunk_by_learning_outcomes(sample_curriculum_text, max_chars=8000)
        assert len(chunks) == 1

    def test_splits_on_outcome_boundaries(self, sample_curriculum_text):
        chunks = chunk_by_learning_outcomes(sample_curriculum_text, max_chars=500)

        assert len(chunks) == 3
        assert chunks[0].startswith("Unit 201")
        assert chunks[1].startswith("LO2")
        assert chunks[2].startswith("LO3")
        # Criteria stay with their outcome
        assert "2.2 Explain the complaints procedure" in chunks[1]

    def test_oversized_outcome_is_sub_chunked(self):
        text = "LO1 Big outcome\n" + "word " * 400 + "\nLO2 Small outcome\n" + "more " * 50
        chunks = chunk_by_learning_outcomes(text, max_chars=500)

        assert len(chunks) > 2
        assert all(len(c) <= 500 for c in chunks)
        assert chunks[-1].startswith("LO2")

    def test_falls_back_without_markers(self, sample_textbook_text):
        assert chunk_by_learning_outcomes(sample_textbook_text, 300) == chunk_text(
            sample_textbook_text, 300
        )
