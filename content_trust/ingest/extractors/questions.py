"""
Question parsing and per-type normalization.

Models describe the same question type many ways ("multiple choice",
"T/F", "gap fill") and answer MCQs with a bare letter. Everything is
normalized here so stored questions follow one convention per type:

- MCQ: ``correct_answer`` is the option text, not its letter
- TRUE_FALSE: ``correct_answer`` is "True" or "False"
- FILL_BLANK: the gap in ``text`` is marked ``___``
- MATCHING / ORDERING / UNSCRAMBLE: ``options`` keep the items,
  ``correct_answer`` the pairing or sequence
"""

import logging
import re
from typing import Any, Optional

from content_trust.ingest.dedup import content_hash
from content_trust.ingest.models import ExtractedQuestion, QuestionType

logger = logging.getLogger(__name__)

BLANK = "___"

QUESTION_TYPE_ALIASES = {
    "MULTIPLE_CHOICE": QuestionType.MCQ,
    "MC": QuestionType.MCQ,
    "MCQ": QuestionType.MCQ,
    "TF": QuestionType.TRUE_FALSE,
    "T/F": QuestionType.TRUE_FALSE,
    "TRUE/FALSE": QuestionType.TRUE_FALSE,
    "TRUE_OR_FALSE": QuestionType.TRUE_FALSE,
    "MATCH": QuestionType.MATCHING,
    "MATCHING_EXERCISE": QuestionType.MATCHING,
    "FILL_IN_THE_BLANK": QuestionType.FILL_BLANK,
    "FILL_IN_BLANK": QuestionType.FILL_BLANK,
    "GAP_FILL": QuestionType.FILL_BLANK,
    "CLOZE": QuestionType.FILL_BLANK,
    "SHORT": QuestionType.SHORT_ANSWER,
    "OPEN_ENDED": QuestionType.OPEN,
    "DISCUSSION": QuestionType.OPEN,
    "ESSAY": QuestionType.OPEN,
    "EXTENDED_RESPONSE": QuestionType.OPEN,
    "SCRAMBLE": QuestionType.UNSCRAMBLE,
    "WORD_ORDER": QuestionType.UNSCRAMBLE,
    "SENTENCE_UNSCRAMBLE": QuestionType.UNSCRAMBLE,
    "ORDER": QuestionType.ORDERING,
    "SEQUENCE": QuestionType.ORDERING,
    "SEQUENCING": QuestionType.ORDERING,
}

_TRUE_WORDS = {"true", "t", "yes", "correct", "right"}
_FALSE_WORDS = {"false", "f", "no", "incorrect", "wrong"}

_GAP_RE = re.compile(r"_{2,}|\[\s*blank\s*\]|\(\s*blank\s*\)|\.{3,}|…", re.IGNORECASE)
_LETTER_ANSWER_RE = re.compile(r"^\(?([A-Ha-h])[\).:]?$")
_OPTION_PREFIX_RE = re.compile(r"^\(?[A-Ha-h][\).:]\s+")


def normalize_question_type(value: Any) -> Optional[str]:
    """Canonical QuestionType value for a model-supplied label, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    key = re.sub(r"[\s\-]+", "_", value.strip().upper())
    if key in QuestionType._value2member_map_:
        return key
    alias = QUESTION_TYPE_ALIASES.get(key) or QUESTION_TYPE_ALIASES.get(key.replace("_", ""))
    return alias.value if alias else None


def normalize_true_false(answer: Optional[str]) -> Optional[str]:
    if answer is None:
        return None
    word = answer.strip().strip(".!").lower()
    if word in _TRUE_WORDS:
        return "True"
    if word in _FALSE_WORDS:
        return "False"
    return None


def clamp_difficulty(value: Any, default: int = 3) -> int:
    if isinstance(value, bool):
        return default
    try:
        difficulty = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(1, min(5, difficulty))


def _as_list(value: Any) -> list:
    # A bare string would otherwise be iterated character by character
    return value if isinstance(value, list) else []


def _option_text(option: Any) -> Optional[str]:
    if isinstance(option, dict):
        left = option.get("item") or option.get("left") or option.get("term")
        right = option.get("match") or option.get("right") or option.get("definition")
        if left and right:
            return f"{str(left).strip()} -> {str(right).strip()}"
        values = [str(v).strip() for v in option.values() if v]
        return " -> ".join(values) or None
    if option is None:
        return None
    text = str(option).strip()
    return text or None


def _answer_text(answer: Any) -> Optional[str]:
    if answer is None:
        return None
    if isinstance(answer, bool):
        return "True" if answer else "False"
    if isinstance(answer, list):
        parts = [str(a).strip() for a in answer if a is not None and str(a).strip()]
        return ", ".join(parts) or None
    if isinstance(answer, dict):
        return ", ".join(f"{k}-{v}" for k, v in answer.items()) or None
    text = str(answer).strip()
    return text or None


def _resolve_mcq_answer(answer: Optional[str], options: list[str]) -> Optional[str]:
    """Map a letter answer ("B", "(b)", "B)") to the option text."""
    if not answer or not options:
        return answer
    match = _LETTER_ANSWER_RE.match(answer.strip())
    if match:
        index = ord(match.group(1).upper()) - ord("A")
        if index < len(options):
            return _OPTION_PREFIX_RE.sub("", options[index])
    return _OPTION_PREFIX_RE.sub("", answer)


def _mark_gap(text: str, answer: Optional[str]) -> str:
    """Normalize the gap marker to ``___``, inserting one if missing."""
    if _GAP_RE.search(text):
        return _GAP_RE.sub(BLANK, text)
    if answer:
        pattern = re.compile(re.escape(answer), re.IGNORECASE)
        if pattern.search(text):
            return pattern.sub(BLANK, text, count=1)
    return text


def build_question(
    item: Any,
    chapter: Optional[str] = None,
    default_type: str = QuestionType.SHORT_ANSWER.value,
) -> Optional[ExtractedQuestion]:
    """
    Build a normalized question from one model item.

    Returns None when the item has no question text, or when a TRUE_FALSE
    answer cannot be read as true or false.
    """
    if not isinstance(item, dict):
        return None

    text = str(item.get("question") or item.get("text") or "").strip()
    if not text:
        return None

    options = [o for o in (_option_text(o) for o in _as_list(item.get("options"))) if o]
    answer = _answer_text(item.get("correctAnswer", item.get("answer")))

    question_type = normalize_question_type(item.get("type"))
    if question_type is None:
        question_type = QuestionType.MCQ.value if options else default_type

    if question_type == QuestionType.MCQ.value:
        answer = _resolve_mcq_answer(answer, options)
    elif question_type == QuestionType.TRUE_FALSE.value:
        normalized = normalize_true_false(answer)
        if answer is not None and normalized is None:
            logger.debug(f"Dropping TRUE_FALSE question with answer {answer!r}")
            return None
        answer = normalized
    elif question_type == QuestionType.FILL_BLANK.value:
        text = _mark_gap(text, answer)

    return ExtractedQuestion(
        text=text,
        question_type=question_type,
        content_hash=content_hash(text),
        options=options,
        correct_answer=answer,
        explanation=_answer_text(item.get("explanation")),
        mark_scheme=_answer_text(item.get("markScheme")),
        learning_outcome_ref=_answer_text(item.get("learningOutcomeRef")),
        difficulty=clamp_difficulty(item.get("difficulty")),
        chapter=_answer_text(item.get("chapter")) or chapter,
        tags=[str(t).strip() for t in _as_list(item.get("tags")) if t is not None and str(t).strip()],
    )


def parse_questions(items: list, chapter: Optional[str] = None) -> list[ExtractedQuestion]:
    questions = []
    for item in items:
        question = build_question(item, chapter=chapter)
        if question is not None:
            questions.append(question)
    return questions
