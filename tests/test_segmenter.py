"""
Tests for composite document segmentation.
"""

from content_trust.ingest.segmenter import (
    DocumentSegmenter,
    resolve_section_offsets,
    single_section,
)

FULL = "Preamble. Heading One\nbody one. Heading Two\nbody two."


class TestResolveSectionOffsets:
    """Tests for fingerprint-to-offset resolution."""

    def test_first_section_absorbs_preamble(self):
        sections = resolve_section_offsets(FULL, [
            {"title": "One", "startText": "Heading One"},
            {"title": "Two", "startText": "heading two"},
        ])

        assert [(s.start_offset, s.end_offset) for s in sections] == [(0, 32), (32, len(FULL))]
        assert sections[1].text_of(FULL).startswith("Heading Two")

    def test_sections_contiguous_and_cover_text(self):
        sections = resolve_section_offsets(FULL, [
            {"title": "One", "startText": "Heading One"},
            {"title": "Two", "startText": "Heading Two"},
        ])
        assert sections[0].start_offset == 0
        assert sections[-1].end_offset == len(FULL)
        for a, b in zip(sections, sections[1:]):
            assert a.end_offset == b.start_offset

    def test_short_prefix_fallback(self):
        sections = resolve_section_offsets(FULL, [
            {"title": "One", "startText": "Heading One"},
            {"title": "Two", "startText": "Heading Two\nbody with a hallucinated tail"},
        ])
        assert sections[1].start_offset == 32

    def test_miss_starts_at_previous_match_end(self):
        sections = resolve_section_offsets(FULL, [
            {"title": "One", "startText": "Heading One"},
            {"title": "Two", "startText": "Words that never appear"},
        ])
        assert sections[1].start_offset == len("Preamble. Heading One")

    def test_search_is_ordered(self):
        text = "Task: read.\nTask: write.\n"
        sections = resolve_section_offsets(text, [
            {"title": "First", "startText": "Task: read"},
            {"title": "Second", "startText": "Task: "},
        ])
        assert sections[1].start_offset == text.index("Task: write")

    def test_zero_length_sections_dropped(self):
        sections = resolve_section_offsets(FULL, [
            {"title": "Tiny", "startText": "x"},
            {"title": "Real", "startText": "Preamble"},
        ])
        assert [s.title for s in sections] == ["Real"]
        assert (sections[0].start_offset, sections[0].end_offset) == (0, len(FULL))

    def test_fields_normalized(self):
        sections = resolve_section_offsets(FULL, [
            "not a dict",
            {
                "startText": "Heading One",
                "sectionType": "worksheet",
                "pedagogicalRole": "check",
                "hasQuestions": True,
                "hasAnswerKey": "yes",
            },
        ])
        section = sections[0]
        assert section.title == "Section 2"
        assert section.section_type == "WORKSHEET"
        assert section.pedagogical_role == "CHECK"
        assert section.has_questions is True
        assert section.has_answer_key is False

    def test_unknown_type_and_role_default(self):
        section = resolve_section_offsets(FULL, [
            {"title": "X", "startText": "Heading One", "sectionType": "POEM", "pedagogicalRole": "?"},
        ])[0]
        assert section.section_type == "TEXTBOOK"
        assert section.pedagogical_role == "INPUT"

    def test_empty(self):
        assert resolve_section_offsets(FULL, []) == []


class TestDocumentSegmenter:
    """Tests for the segmenter."""

    def test_short_document_needs_no_call(self, fake_gateway):
        text = "A short note. " * 21 + "ab"
        assert len(text) == 296
        gateway = fake_gateway([])

        result = DocumentSegmenter(gateway).segment(text, "note.txt")

        assert result.is_composite is False
        assert len(result.sections) == 1
        section = result.sections[0]
        assert (section.start_offset, section.end_offset) == (0, len(text))
        assert section.pedagogical_role == "INPUT"
        assert gateway.calls == []

    def test_composite_document(self, fake_gateway, composite_text):
        gateway = fake_gateway([{
            "isComposite": True,
            "sections": [
                {"title": "Fractions", "startText": "Chapter 1: Fractions",
                 "sectionType": "TEXTBOOK", "pedagogicalRole": "INPUT"},
                {"title": "Exercise 1", "startText": "Exercise 1",
                 "sectionType": "WORKSHEET", "pedagogicalRole": "CHECK", "hasQuestions": True},
                {"title": "Answer Key", "startText": "answer key",
                 "sectionType": "REFERENCE", "pedagogicalRole": "REFERENCE", "hasAnswerKey": True},
            ],
        }])

        result = DocumentSegmenter(gateway).segment(composite_text, "workbook.docx")

        assert result.is_composite is True
        assert result.fallback_reason is None
        assert [s.title for s in result.sections] == ["Fractions", "Exercise 1", "Answer Key"]
        assert result.sections[1].start_offset == composite_text.index("Exercise 1")
        assert result.sections[2].text_of(composite_text).startswith("Answer Key")
        assert gateway.calls[0]["call_point"] == "segment"

    def test_mixed_types_imply_composite(self, fake_gateway, composite_text):
        gateway = fake_gateway([{
            "isComposite": False,
            "sections": [
                {"title": "A", "startText": "Chapter 1", "sectionType": "TEXTBOOK"},
                {"title": "B", "startText": "Exercise 1", "sectionType": "WORKSHEET"},
            ],
        }])
        assert DocumentSegmenter(gateway).segment(composite_text, "w.docx").is_composite is True

    def test_single_type_not_composite(self, fake_gateway, composite_text):
        gateway = fake_gateway([{
            "isComposite": False,
            "sections": [{"title": "All", "startText": "Chapter 1", "sectionType": "TEXTBOOK"}],
        }])
        result = DocumentSegmenter(gateway).segment(composite_text, "w.docx")
        assert result.is_composite is False
        assert result.fallback_reason is None

    def test_empty_response_falls_back(self, fake_gateway, composite_text):
        result = DocumentSegmenter(fake_gateway([])).segment(composite_text, "w.docx")
        assert result.is_composite is False
        assert result.fallback_reason == "empty response from model"
        assert result.sections[0].end_offset == len(composite_text)

    def test_unparseable_response_falls_back(self, fake_gateway, composite_text):
        result = DocumentSegmenter(fake_gateway(["no idea"])).segment(composite_text, "w.docx")
        assert result.is_composite is False
        assert result.fallback_reason

    def test_no_sections_falls_back(self, fake_gateway, composite_text):
        gateway = fake_gateway([{"isComposite": True, "sections": []}])
        result = DocumentSegmenter(gateway).segment(composite_text, "w.docx")
        assert result.fallback_reason == "no sections in response"

    def test_single_section_helper(self):
        result = single_section("abc", "f.txt", reason="why")
        assert result.to_dict()["sections"][0]["end_offset"] == 3
        assert result.fallback_reason == "why"
