"""
Question and vocabulary linking for Content Trust.

After extraction, each question and vocabulary term that has no parent yet
is matched to the assertion it most likely belongs to. Candidates are
scored by several signals, strongest first:

    1. learning outcome reference, exact match
    2. same chapter, with an extra boost for the same section
    3. keyword overlap (Jaccard), counted only above a floor
    4. tag overlap

The best candidate is linked when its score reaches ``min_link_score``.
Linking only fills ``parent_assertion_hash`` where it is unset, so running
it twice gives the same result.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from content_trust.ingest.models import ExtractedAssertion, ExtractedQuestion, ExtractedVocabulary

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset("""
    a an the is are was were be been being have has had do does did will would
    could should may might shall can to of in for on with at by from as into
    through during before after above below between out off over under again
    further then once here there when where why how all each every both few
    more most other some such no not only own same so than too very just
    because if or and but nor what which who whom this that these those it its
    he she they them we you i
""".split())

_NON_WORD_RE = re.compile(r"[^a-z0-9\s'-]")

# Share of the chapter boost added when the section matches too
SECTION_BOOST_RATIO = 0.4
KEYWORD_WEIGHT = 0.5
TAG_WEIGHT = 0.15


@dataclass
class LinkingSettings:
    enabled: bool = True
    lo_ref_match_boost: float = 1.0
    chapter_match_boost: float = 0.3
    min_keyword_score: float = 0.1
    min_link_score: float = 0.2

    @classmethod
    def from_config(cls, cfg: Optional[dict]) -> "LinkingSettings":
        """Read the ``contentLinking`` block of an extraction config."""
        block = (cfg or {}).get("contentLinking") or {}
        return cls(
            enabled=bool(block.get("enabled", True)),
            lo_ref_match_boost=float(block.get("loRefMatchBoost", 1.0)),
            chapter_match_boost=float(block.get("chapterMatchBoost", 0.3)),
            min_keyword_score=float(block.get("minKeywordScore", 0.1)),
            min_link_score=float(block.get("minLinkScore", 0.2)),
        )


@dataclass
class LinkingResult:
    questions_linked: int = 0
    questions_orphaned: int = 0
    vocabulary_linked: int = 0
    vocabulary_orphaned: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "questions_linked": self.questions_linked,
            "questions_orphaned": self.questions_orphaned,
            "vocabulary_linked": self.vocabulary_linked,
            "vocabulary_orphaned": self.vocabulary_orphaned,
            "warnings": list(self.warnings),
        }


@dataclass
class _Linkable:
    """The fields scoring looks at, for either side of a link."""

    keywords: frozenset
    chapter: Optional[str] = None
    section: Optional[str] = None
    learning_outcome_ref: Optional[str] = None
    tags: frozenset = frozenset()


def extract_keywords(text: str) -> frozenset:
    """Lower-cased words longer than two characters, stop words removed."""
    words = _NON_WORD_RE.sub(" ", (text or "").lower()).split()
    return frozenset(w for w in words if len(w) > 2 and w not in STOP_WORDS)


def jaccard_similarity(a: frozenset, b: frozenset) -> float:
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


def _tags(values: list[str]) -> frozenset:
    return frozenset(t.strip().lower() for t in values if t and t.strip())


def score_candidate(item: _Linkable, candidate: _Linkable, settings: LinkingSettings) -> float:
    """Composite score of ``candidate`` as the parent of ``item``. Boosts stack."""
    score = 0.0

    if item.learning_outcome_ref and item.learning_outcome_ref == candidate.learning_outcome_ref:
        score += settings.lo_ref_match_boost

    if _same(item.chapter, candidate.chapter):
        score += settings.chapter_match_boost
        if _same(item.section, candidate.section):
            score += settings.chapter_match_boost * SECTION_BOOST_RATIO

    keyword_score = jaccard_similarity(item.keywords, candidate.keywords)
    if keyword_score >= settings.min_keyword_score:
        score += keyword_score * KEYWORD_WEIGHT

    if item.tags and candidate.tags:
        overlap = len(item.tags & candidate.tags)
        if overlap:
            score += overlap / max(len(item.tags), len(candidate.tags)) * TAG_WEIGHT

    return score


def _candidate(assertion: ExtractedAssertion) -> _Linkable:
    return _Linkable(
        keywords=extract_keywords(assertion.text),
        chapter=assertion.chapter,
        section=assertion.section,
        learning_outcome_ref=assertion.learning_outcome_ref,
        tags=_tags(assertion.tags),
    )


def _best_match(
    item: _Linkable,
    candidates: list[tuple[ExtractedAssertion, _Linkable]],
    settings: LinkingSettings,
) -> tuple[Optional[ExtractedAssertion], float]:
    best = None
    best_score = 0.0
    for assertion, candidate in candidates:
        score = score_candidate(item, candidate, settings)
        if score > best_score:
            best, best_score = assertion, score
    return best, best_score


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def link_content(
    assertions: list[ExtractedAssertion],
    questions: list[ExtractedQuestion],
    vocabulary: list[ExtractedVocabulary],
    settings: Optional[LinkingSettings] = None,
) -> LinkingResult:
    """
    Link unlinked questions and vocabulary to their best-scoring assertion.

    Sets ``parent_assertion_hash`` in place. Items that already have a
    parent are left alone and not counted.

    Args:
        assertions: Candidate parents
        questions: Questions to link
        vocabulary: Vocabulary terms to link
        settings: Scoring weights and thresholds (defaults if None)

    Returns:
        LinkingResult with linked and orphaned counts
    """
    settings = settings or LinkingSettings()
    result = LinkingResult()

    unlinked_questions = [q for q in questions if not q.parent_assertion_hash]
    unlinked_vocabulary = [v for v in vocabulary if not v.parent_assertion_hash]
    if not unlinked_questions and not unlinked_vocabulary:
        return result

    if not assertions:
        result.questions_orphaned = len(unlinked_questions)
        result.vocabulary_orphaned = len(unlinked_vocabulary)
        result.warnings.append("No assertions to link questions or vocabulary to")
        return result

    candidates = [(a, _candidate(a)) for a in assertions]

    for question in unlinked_questions:
        item = _Linkable(
            keywords=extract_keywords(question.text),
            chapter=question.chapter,
            learning_outcome_ref=question.learning_outcome_ref,
            tags=_tags(question.tags),
        )
        parent, score = _best_match(item, candidates, settings)
        if parent is not None and score >= settings.min_link_score:
            question.parent_assertion_hash = parent.content_hash
            result.questions_linked += 1
        else:
            result.questions_orphaned += 1

    for term in unlinked_vocabulary:
        item = _Linkable(
            keywords=extract_keywords(f"{term.term} {term.definition}"),
            tags=_tags([term.topic] if term.topic else []),
        )
        parent, score = _best_match(item, candidates, settings)
        if parent is not None and score >= settings.min_link_score:
            term.parent_assertion_hash = parent.content_hash
            result.vocabulary_linked += 1
        else:
            result.vocabulary_orphaned += 1

    if result.questions_orphaned:
        result.warnings.append(
            f"{_plural(result.questions_orphaned, 'question')} could not be linked to "
            f"assertions (below score threshold {settings.min_link_score})"
        )
    if result.vocabulary_orphaned:
        result.warnings.append(
            f"{_plural(result.vocabulary_orphaned, 'vocabulary term')} could not be linked to assertions"
        )

    logger.info(
        f"Linked {_plural(result.questions_linked, 'question')} and "
        f"{_plural(result.vocabulary_linked, 'vocabulary term')} to assertions"
    )
    return result
