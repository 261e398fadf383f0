"""
Tests for section filtering and tagging.
"""

import pytest

from content_trust.ingest.models import DocumentSection
from content_trust.ingest.section_filter import (
    FilterSettings,
    detect_figure_refs,
    filter_sections,
)

BODY = "Plants make glucose from carbon dioxide and water using light energy. "


def _layout(*parts):
    """Build full text and sections from (title, body, kwargs) tuples."""
    text = ""
    sections = []
    for title, body, kwargs in parts:
        start = len(text)
        text += body
        sections.append(DocumentSection(title=title, start_offset=start, end_offset=len(text), **kwargs))
    return text, sections


class TestFigureRefs:
    """Tests for figure reference detection."""

    def test_numbered_and_lettered(self):
        text = "See Figure 2.1 and fig. 3, then Table A. Diagram 4b shows it. Figure 2.1 again."
        assert detect_figure_refs(text) == ["Figure 2.1", "fig. 3", "Table A", "Diagram 4b"]

    def test_lowercase_words_are_not_refs(self):
        assert detect_figure_refs("The table is set. An image is worth a thousand words.") == []

    def test_empty(self):
        assert detect_figure_refs("") == []
        assert detect_figure_refs(None) == []


class TestFilterSections:
    """Tests for skip / reference / extract decisions."""

    @pytest.fixture
    def settings(self, base_config):
        return FilterSettings.from_config(base_config)

    def test_meta_role_skipped(self, settings):
        text, sections = _layout(
            ("Cover", BODY, {"pedagogical_role": "META"}),
            ("Reading", BODY, {}),
        )
        result = filter_sections(text, sections, settings)
        assert [s.title for s in result.sections] == ["Reading"]
        assert [s.title for s in result.skipped] == ["Cover"]

    @pytest.mark.parametrize("title", ["Contents", "Table of Contents:", "COPYRIGHT", "Index."])
    def test_front_matter_skipped(self, settings, title):
        text, sections = _layout((title, BODY, {}))
        result = filter_sections(text, sections, settings)
        assert result.sections == []
        assert "front/back matter" in result.warnings[0]

    def test_short_section_skipped(self, settings):
        text, sections = _layout(("Tiny", "Too short.", {}), ("Reading", BODY, {}))
        result = filter_sections(text, sections, settings)
        assert [s.title for s in result.skipped] == ["Tiny"]
        assert "shorter than 50 chars" in result.warnings[0]

    def test_skip_pattern(self):
        settings = FilterSettings(skip_title_patterns=[r"^appendix"])
        text, sections = _layout(("Appendix B", BODY, {}), ("Unit 1", BODY, {}))
        result = filter_sections(text, sections, settings)
        assert [s.title for s in result.sections] == ["Unit 1"]

    def test_invalid_regex_used_as_substring(self):
        settings = FilterSettings(skip_title_patterns=["extras ("])
        text, sections = _layout(("Extras (online)", BODY, {}))
        assert filter_sections(text, sections, settings).sections == []

    def test_reference_by_title(self, settings):
        text, sections = _layout(("Answer Key", BODY, {}), ("Glossary", BODY, {}))
        result = filter_sections(text, sections, settings)
        assert [s.filter_action for s in result.sections] == ["reference", "reference"]

    def test_reference_by_flag_or_role(self, settings):
        text, sections = _layout(
            ("Page 12", BODY, {"has_answer_key": True}),
            ("Word bank", BODY, {"pedagogical_role": "REFERENCE"}),
            ("Reading", BODY, {}),
        )
        result = filter_sections(text, sections, settings)
        assert [s.filter_action for s in result.sections] == ["reference", "reference", "extract"]

    def test_figure_refs_attached(self, settings):
        text, sections = _layout(("Reading", BODY + "Look at Figure 3 closely.", {}))
        result = filter_sections(text, sections, settings)
        assert result.sections[0].figure_refs == ["Figure 3"]

    def test_input_sections_not_mutated(self, settings):
        text, sections = _layout(("Reading", BODY, {}))
        filter_sections(text, sections, settings)
        assert sections[0].filter_action is None

    def test_one_warning_per_section(self, settings):
        text, sections = _layout(
            ("Contents", BODY, {}),
            ("Reading", BODY, {}),
            ("Answers", BODY, {}),
        )
        result = filter_sections(text, sections, settings)
        assert len(result.warnings) == 3
        assert result.warnings[1] == "Section 'Reading': extract"
        assert result.warnings[2] == "Section 'Answers': reference"
