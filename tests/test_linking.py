"""
Tests for linking questions and vocabulary to their parent assertions.
"""

from content_trust.extraction_config import resolve_extraction_config
from content_trust.ingest.dedup import content_hash
from content_trust.ingest.linking import (
    LinkingSettings,
    extract_keywords,
    jaccard_similarity,
    link_content,
)
from content_trust.ingest.models import (
    ExtractedAssertion,
    ExtractedQuestion,
    ExtractedVocabulary,
)

PHOTOSYNTHESIS = "Photosynthesis converts light energy into chemical energy in chloroplasts."
RESPIRATION = "Respiration releases energy from glucose in mitochondria."
OXYGEN = "Plants release oxygen gas during photosynthesis."
OSMOSIS = "Osmosis is the movement of water across a partially permeable membrane."


def assertion(text, **kwargs):
    return ExtractedAssertion(text=text, category="fact", content_hash=content_hash(text), **kwargs)


def question(text, **kwargs):
    return ExtractedQuestion(
        text=text, question_type="SHORT_ANSWER", content_hash=content_hash(text), **kwargs
    )


def term(word, definition, **kwargs):
    return ExtractedVocabulary(term=word, definition=definition, content_hash=content_hash(word), **kwargs)


class TestKeywords:
    def test_stop_words_and_short_words_dropped(self):
        assert extract_keywords("Where does the cell get its energy? It is ATP.") == {
            "cell", "get", "energy", "atp"
        }

    def test_jaccard(self):
        assert jaccard_similarity(frozenset("ab"), frozenset("bc")) == 1 / 3
        assert jaccard_similarity(frozenset(), frozenset()) == 0.0


class TestQuestionLinking:
    """Scoring picks the most likely parent assertion."""

    def test_learning_outcome_ref_beats_keyword_overlap(self):
        lo2 = assertion(PHOTOSYNTHESIS, learning_outcome_ref="LO2")
        lo1 = assertion(RESPIRATION, learning_outcome_ref="LO1")
        q = question("Where does respiration release energy from glucose?", learning_outcome_ref="LO2")

        result = link_content([lo2, lo1], [q], [])

        assert q.parent_assertion_hash == lo2.content_hash
        assert result.questions_linked == 1
        assert result.warnings == []

    def test_keyword_overlap_links_without_structure(self):
        unrelated = assertion(RESPIRATION)
        oxygen = assertion(OXYGEN)
        q = question("Name the gas plants release during photosynthesis")

        link_content([unrelated, oxygen], [q], [])

        assert q.parent_assertion_hash == oxygen.content_hash

    def test_keyword_overlap_below_floor_ignored(self):
        chlorophyll = "Chlorophyll absorbs red and blue light strongly."
        lenient = LinkingSettings(min_link_score=0.05)
        strict = LinkingSettings(min_link_score=0.05, min_keyword_score=0.2)

        # One shared keyword out of seven: Jaccard of 1/7
        linked = question("What colour is chlorophyll?")
        link_content([assertion(chlorophyll)], [linked], [], lenient)
        assert linked.parent_assertion_hash == content_hash(chlorophyll)

        orphan = question("What colour is chlorophyll?")
        result = link_content([assertion(chlorophyll)], [orphan], [], strict)
        assert orphan.parent_assertion_hash is None
        assert result.questions_orphaned == 1

    def test_weak_match_left_orphaned(self):
        q = question("What colour is chlorophyll?")

        result = link_content([assertion("Chlorophyll absorbs red and blue light strongly.")], [q], [])

        assert q.parent_assertion_hash is None
        assert result.questions_orphaned == 1
        assert result.warnings == [
            "1 question could not be linked to assertions (below score threshold 0.2)"
        ]

    def test_chapter_match_is_case_insensitive(self):
        other = assertion(OSMOSIS, chapter="Unit 2")
        same = assertion(RESPIRATION, chapter="Unit 1")
        q = question("Explain the diagram.", chapter="unit 1")

        link_content([other, same], [q], [])

        assert q.parent_assertion_hash == same.content_hash

    def test_ties_go_to_the_first_assertion(self):
        first = assertion(RESPIRATION, chapter="Unit 1")
        second = assertion(OSMOSIS, chapter="Unit 1")
        q = question("Explain the diagram.", chapter="Unit 1")

        link_content([first, second], [q], [])

        assert q.parent_assertion_hash == first.content_hash


class TestVocabularyLinking:
    def test_term_and_definition_matched(self):
        osmosis = assertion(OSMOSIS)
        vocab = term("osmosis", "movement of water across a membrane")

        result = link_content([assertion(RESPIRATION), osmosis], [], [vocab])

        assert vocab.parent_assertion_hash == osmosis.content_hash
        assert result.vocabulary_linked == 1

    def test_unmatched_term_warns(self):
        vocab = term("quasar", "a very bright distant galaxy core")

        result = link_content([assertion(OSMOSIS)], [], [vocab])

        assert vocab.parent_assertion_hash is None
        assert result.warnings == ["1 vocabulary term could not be linked to assertions"]


class TestNonDestructive:
    """Existing links are kept and re-running changes nothing."""

    def test_existing_link_kept(self):
        q = question("Where does respiration release energy from glucose?")
        q.parent_assertion_hash = "chosen-by-reviewer"

        result = link_content([assertion(RESPIRATION)], [q], [])

        assert q.parent_assertion_hash == "chosen-by-reviewer"
        assert result.to_dict() == {
            "questions_linked": 0,
            "questions_orphaned": 0,
            "vocabulary_linked": 0,
            "vocabulary_orphaned": 0,
            "warnings": [],
        }

    def test_idempotent(self):
        assertions = [assertion(RESPIRATION), assertion(OXYGEN)]
        linked = question("Name the gas plants release during photosynthesis")
        orphan = question("Who wrote Hamlet?")

        link_content(assertions, [linked, orphan], [])
        first = [linked.parent_assertion_hash, orphan.parent_assertion_hash]
        again = link_content(assertions, [linked, orphan], [])

        assert [linked.parent_assertion_hash, orphan.parent_assertion_hash] == first
        assert again.questions_linked == 0
        assert again.questions_orphaned == 1

    def test_no_assertions(self):
        q = question("Who wrote Hamlet?")

        result = link_content([], [q], [term("sonnet", "a fourteen line poem")])

        assert q.parent_assertion_hash is None
        assert (result.questions_orphaned, result.vocabulary_orphaned) == (1, 1)
        assert result.warnings == ["No assertions to link questions or vocabulary to"]


class TestLinkingSettings:
    def test_defaults_from_config(self):
        settings = LinkingSettings.from_config(resolve_extraction_config(None))
        assert settings == LinkingSettings()

    def test_override(self):
        cfg = resolve_extraction_config(
            None, {"contentLinking": {"enabled": False, "minLinkScore": 0.5}}
        )
        settings = LinkingSettings.from_config(cfg)
        assert settings.enabled is False
        assert settings.min_link_score == 0.5
        assert settings.lo_ref_match_boost == 1.0
