"""
Data model for document ingestion and extraction.

Types travel as plain strings (they come from model output and JSON
config); the enums below are the vocabularies they are validated against.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional


class DocumentType(str, Enum):
    """What kind of teaching document a text (or section) is."""

    CURRICULUM = "CURRICULUM"
    TEXTBOOK = "TEXTBOOK"
    WORKSHEET = "WORKSHEET"
    EXAMPLE = "EXAMPLE"
    ASSESSMENT = "ASSESSMENT"
    REFERENCE = "REFERENCE"
    COMPREHENSION = "COMPREHENSION"
    LESSON_PLAN = "LESSON_PLAN"
    POLICY_DOCUMENT = "POLICY_DOCUMENT"

    @classmethod
    def normalize(cls, value: Optional[str], default: "DocumentType" = None) -> Optional[str]:
        """Return the canonical type string for ``value``, or ``default``."""
        if isinstance(value, str):
            candidate = value.strip().upper().replace(" ", "_").replace("-", "_")
            if candidate in cls._value2member_map_:
                return candidate
        return default.value if default is not None else None


class PedagogicalRole(str, Enum):
    """What a section does for the learner."""

    ACTIVATE = "ACTIVATE"
    INPUT = "INPUT"
    CHECK = "CHECK"
    PRODUCE = "PRODUCE"
    REFLECT = "REFLECT"
    REFERENCE = "REFERENCE"
    META = "META"  # contents, copyright, title page

    @classmethod
    def normalize(cls, value: Optional[str]) -> str:
        if isinstance(value, str) and value.strip().upper() in cls._value2member_map_:
            return value.strip().upper()
        return cls.INPUT.value


class QuestionType(str, Enum):
    MCQ = "MCQ"
    TRUE_FALSE = "TRUE_FALSE"
    MATCHING = "MATCHING"
    FILL_BLANK = "FILL_BLANK"
    SHORT_ANSWER = "SHORT_ANSWER"
    OPEN = "OPEN"
    UNSCRAMBLE = "UNSCRAMBLE"
    ORDERING = "ORDERING"


DEFAULT_DOCUMENT_TYPE = DocumentType.TEXTBOOK.value

_FORMAT_BY_SUFFIX = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".doc": "docx",
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "text",
    ".json": "json",
    ".jsonl": "json",
}


def detect_format(file_name: str) -> str:
    """Format hint from a file name's extension; unknown -> "text"."""
    return _FORMAT_BY_SUFFIX.get(Path(file_name or "").suffix.lower(), "text")


@dataclass
class SourceDocument:
    """An already-decoded document handed to the pipeline."""

    text: str
    file_name: str = "document.txt"
    declared_type: Optional[str] = None
    qualification_ref: Optional[str] = None
    format_hint: Optional[str] = None
    page_count: Optional[int] = None
    source_id: Optional[str] = None
    domain_id: Optional[str] = None

    def __post_init__(self):
        if self.format_hint is None:
            self.format_hint = detect_format(self.file_name)

    @property
    def slug(self) -> str:
        """Stable identifier used in logs and prompts."""
        return self.source_id or Path(self.file_name).stem


@dataclass
class DocumentSection:
    """
    A contiguous span of a document with a single pedagogical purpose.

    Offsets are half-open ``[start_offset, end_offset)`` into the full text.
    """

    title: str
    start_offset: int
    end_offset: int
    section_type: str = DEFAULT_DOCUMENT_TYPE
    pedagogical_role: str = PedagogicalRole.INPUT.value
    has_questions: bool = False
    has_answer_key: bool = False
    filter_action: Optional[str] = None  # "extract" | "reference" once filtered
    figure_refs: list[str] = field(default_factory=list)

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset

    def text_of(self, full_text: str) -> str:
        return full_text[self.start_offset : self.end_offset]

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "section_type": self.section_type,
            "pedagogical_role": self.pedagogical_role,
            "has_questions": self.has_questions,
            "has_answer_key": self.has_answer_key,
            "filter_action": self.filter_action,
            "figure_refs": list(self.figure_refs),
        }


@dataclass(frozen=True)
class ExtractionContext:
    """Per-chunk context passed to prompt builders."""

    chunk_index: int
    total_chunks: int
    source_id: Optional[str] = None
    qualification_ref: Optional[str] = None
    focus_chapters: tuple[str, ...] = ()


@dataclass
class ExtractedAssertion:
    """An atomic teaching point."""

    text: str
    category: str
    content_hash: str
    chapter: Optional[str] = None
    section: Optional[str] = None
    page_ref: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    valid_until: Optional[str] = None
    tax_year: Optional[str] = None
    exam_relevance: Optional[float] = None
    learning_outcome_ref: Optional[str] = None
    figure_refs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "assertion": self.text,
            "category": self.category,
            "content_hash": self.content_hash,
            "chapter": self.chapter,
            "section": self.section,
            "page_ref": self.page_ref,
            "tags": list(self.tags),
            "valid_until": self.valid_until,
            "tax_year": self.tax_year,
            "exam_relevance": self.exam_relevance,
            "learning_outcome_ref": self.learning_outcome_ref,
            "figure_refs": list(self.figure_refs),
        }


@dataclass
class ExtractedQuestion:
    """A question with its answer, normalized per question type."""

    text: str
    question_type: str
    content_hash: str
    options: list[str] = field(default_factory=list)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    mark_scheme: Optional[str] = None
    learning_outcome_ref: Optional[str] = None
    difficulty: int = 3
    chapter: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    # content_hash of the assertion this question tests, once linked
    parent_assertion_hash: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "question": self.text,
            "type": self.question_type,
            "content_hash": self.content_hash,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "mark_scheme": self.mark_scheme,
            "learning_outcome_ref": self.learning_outcome_ref,
            "difficulty": self.difficulty,
            "chapter": self.chapter,
            "tags": list(self.tags),
            "parent_assertion_hash": self.parent_assertion_hash,
        }


@dataclass
class ExtractedVocabulary:
    """A vocabulary term. Deduplicated on the lower-cased term."""

    term: str
    definition: str
    content_hash: str
    part_of_speech: Optional[str] = None
    example: Optional[str] = None
    topic: Optional[str] = None
    parent_assertion_hash: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "term": self.term,
            "definition": self.definition,
            "content_hash": self.content_hash,
            "part_of_speech": self.part_of_speech,
            "example": self.example,
            "topic": self.topic,
            "parent_assertion_hash": self.parent_assertion_hash,
        }


@dataclass
class ExtractionOptions:
    """Caller options for one extraction run."""

    source_slug: str = "document"
    source_id: Optional[str] = None
    document_type: str = DEFAULT_DOCUMENT_TYPE
    qualification_ref: Optional[str] = None
    focus_chapters: tuple[str, ...] = ()
    max_assertions: Optional[int] = None
    # Called as on_chunk_done(chunks_done, total_chunks, assertions_so_far)
    on_chunk_done: Optional[Callable[[int, int, int], None]] = None


@dataclass
class ExtractionOutput:
    """Combined result of one extractor run."""

    assertions: list[ExtractedAssertion] = field(default_factory=list)
    questions: list[ExtractedQuestion] = field(default_factory=list)
    vocabulary: list[ExtractedVocabulary] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failed_chunks: int = 0
    chunks_processed: int = 0

    @property
    def ok(self) -> bool:
        return bool(self.assertions or self.questions or self.vocabulary)
