"""
Centralized prompt templates for Content Trust.

All model prompts are defined here to make prompt engineering easier
and to ensure consistency across the codebase. Per-type system prompts are
referenced from the default extraction config so overrides can replace them.
"""

# =============================================================================
# Classification Prompts
# =============================================================================

CLASSIFICATION_SYSTEM_PROMPT = """You classify educational documents for an adaptive tutoring system.
You receive a sample taken from the start, middle and end of a document, plus its filename.
Choose exactly one document type:

- CURRICULUM: syllabus or qualification specification with numbered Learning Outcomes (LO), Assessment Criteria (AC) or range statements.
- TEXTBOOK: study text or training manual; dense explanatory chapters and worked examples.
- COMPREHENSION: reading passage followed by comprehension questions, vocabulary work and/or answers. The learner reads; nothing is filled in.
- WORKSHEET: a sheet the learner completes: blanks, tables to fill, written exercises.
- ASSESSMENT: test or exam material with mark schemes, rubrics or grade boundaries.
- REFERENCE: glossary, quick reference card, summary table; flat lookup material.
- EXAMPLE: case study or sample document used as discussion material.
- LESSON_PLAN: teacher-facing plan with objectives, timings, activities, differentiation.
- POLICY_DOCUMENT: regulatory, compliance or safety procedure document.

Tie-breakers, in order:
1. Numbered LOs/ACs -> CURRICULUM
2. Passage + questions, read-only -> COMPREHENSION
3. Learner writes on the sheet -> WORKSHEET
4. Mark scheme or explicit exam -> ASSESSMENT
5. Teacher-facing timings and activities -> LESSON_PLAN
6. Hazards, controls, legal requirements -> POLICY_DOCUMENT
7. Flat lookup, no narrative -> REFERENCE

Read ALL sample sections before deciding; answer keys and exercises often only appear at the end.

Return ONLY a JSON object:
{"documentType": "<TYPE>", "confidence": 0.0-1.0, "reasoning": "one sentence"}"""


CLASSIFICATION_USER_PROMPT = """Filename: {file_name}

--- DOCUMENT SAMPLE ---
{sample}
--- END SAMPLE ---"""


FEW_SHOT_HEADER = """

WORKED EXAMPLES (documents previously corrected by a human reviewer):"""


FEW_SHOT_EXAMPLE = """
Example {index}:
Filename: {file_name}
Sample: {sample}
Correct type: {corrected_type}{note}"""


# =============================================================================
# Segmentation Prompts
# =============================================================================

SEGMENTATION_SYSTEM_PROMPT = """You analyse the structure of educational documents.

Many teaching documents are COMPOSITE: a reading passage, a vocabulary warm-up, comprehension questions, a discussion task and an answer key can all share one file. Identify each pedagogically distinct section in document order.

For every section return:
- title: the heading, or a short descriptive title
- startText: the first ~30 characters of the section, copied exactly
- sectionType: CURRICULUM | TEXTBOOK | COMPREHENSION | WORKSHEET | ASSESSMENT | REFERENCE | EXAMPLE | LESSON_PLAN | POLICY_DOCUMENT
- pedagogicalRole:
    ACTIVATE  warm-up, pre-reading, vocabulary preparation
    INPUT     main teaching content or reading passage
    CHECK     comprehension questions, matching, true/false
    PRODUCE   discussion, writing or role-play task
    REFLECT   self-assessment or review
    REFERENCE answer key, teacher notes, glossary
    META      table of contents, copyright page, title page
- hasQuestions: true if the section asks the learner questions
- hasAnswerKey: true if the section contains answers or solutions

Return ONLY a JSON object:
{"isComposite": true|false, "sections": [{"title": "...", "startText": "...", "sectionType": "...", "pedagogicalRole": "...", "hasQuestions": false, "hasAnswerKey": false}]}

Rules:
- A document with a single section type throughout is not composite; return one section.
- Merge adjacent text that serves the same purpose.
- Short sections count if their purpose differs.
- Reading + exercises + answers is always composite."""


SEGMENTATION_USER_PROMPT = """Filename: {file_name}

--- DOCUMENT TEXT ---
{sample}
--- END DOCUMENT ---"""


# =============================================================================
# Extraction Prompts (system prompts, referenced from extraction config)
# =============================================================================

EXTRACTION_SYSTEM_PROMPT = """You extract atomic teaching points (assertions) from educational and training material.

Each assertion must be:
- one self-contained fact, definition, threshold, rule, process step or example
- specific enough to be checked against the source on its own
- tagged with a category and any metadata the text supports

Return ONLY a JSON array of objects with:
- assertion: string
- category: one of the valid categories listed in the request
- chapter: string or null
- section: string or null
- tags: 2-5 keywords
- examRelevance: 0.0-1.0
- learningOutcomeRef: e.g. "LO2" or "AC2.3", or null
- validUntil: ISO date when the point is time-bound, or null
- taxYear: e.g. "2024/25", or null
- figureRefs: figure/diagram/table labels referenced, or omit

Extract EVERY distinct teaching point. Keep numbers, dates and thresholds exact. Never add information that is not in the text."""


CURRICULUM_SYSTEM_PROMPT = """You extract from a formal syllabus or curriculum specification.
Learning Outcomes (LO) become topics, Assessment Criteria (AC) key points, range statements details.
Copy LO/AC references exactly as written (e.g. "LO2", "AC2.3").

Categories:
- learning_outcome: a formal Learning Outcome statement
- assessment_criterion: an Assessment Criterion under an LO, keeping its reference prefix
- range: a range or scope statement
- definition: a term defined by the syllabus
- rule: a regulatory or procedural requirement

Return ONLY a JSON array with: assertion, category, chapter, section, tags, examRelevance, learningOutcomeRef, validUntil, taxYear."""


CURRICULUM_STRUCTURE_HINT = """

STRUCTURE HINT: this chunk contains formal Learning Outcome markers ({markers}).
Emit one learning_outcome assertion per LO and one assessment_criterion assertion per AC beneath it,
and set learningOutcomeRef on every assertion to the LO or AC it belongs to."""


WORKSHEET_SYSTEM_PROMPT = """You extract from a learner worksheet or activity sheet.
It may mix reading passages, vocabulary exercises, comprehension questions, discussion prompts and answer keys.

Categories:
- question: a question or task for the learner
- true_false: a statement with its answer, e.g. "X. [Answer: False]"
- matching_exercise: a matching pair written "item -> match"
- vocabulary_exercise: a term with its definition written "term -> definition"
- activity: an activity or exercise instruction
- discussion_prompt: an open-ended discussion question
- information: key teaching content from a passage
- reference: tables, sources or reference data
- answer_key_item: an answer from an answer key

Return ONLY a JSON array with: assertion, category, chapter, section, tags, examRelevance, learningOutcomeRef."""


EXAMPLE_SYSTEM_PROMPT = """You extract from an illustrative document or case study that a tutor will discuss WITH a learner.
Capture what it shows, the concepts it illustrates, why it matters and points worth raising.

Categories:
- concept: a concept the example illustrates
- observation: something notable about the document
- discussion_point: a question or point a tutor would raise
- context: background context

Return ONLY a JSON array with: assertion, category, chapter, section, tags."""


REFERENCE_SYSTEM_PROMPT = """You extract from a glossary, reference card or quick-reference table.
Extract terms, definitions, thresholds, key values and rules as flat lookup items.

Categories:
- definition: a term definition
- threshold: a numeric limit or boundary value
- rule: a rule or regulation
- fact: a factual statement or key value

Return ONLY a JSON array with: assertion, category, tags."""


LESSON_PLAN_SYSTEM_PROMPT = """You extract from a teacher's lesson plan.
Capture objectives, activities, timing, resources, differentiation and assessment opportunities.

Categories: objective, activity, timing, resource, differentiation, assessment_opportunity, plenary, starter.

Return ONLY a JSON array with: assertion, category, chapter, section, tags, learningOutcomeRef."""


POLICY_SYSTEM_PROMPT = """You extract from a regulatory, compliance or safety procedure document.

Categories: safety_point, procedure, legal_requirement, hazard, control_measure, record_requirement, corrective_action, key_fact.

Return ONLY a JSON array with: assertion, category, chapter, section, tags, examRelevance, learningOutcomeRef."""


COMPREHENSION_SYSTEM_PROMPT = """You extract from a comprehension document: a reading passage with questions, vocabulary work and possibly an answer key.

Return ONLY a JSON object with three arrays:
{
  "assertions": [{"assertion": "...", "category": "...", "chapter": null, "tags": [], "examRelevance": 0.5}],
  "questions": [{"question": "...", "type": "...", "options": [], "correctAnswer": "...", "explanation": null, "learningOutcomeRef": null, "difficulty": 1-5}],
  "vocabulary": [{"term": "...", "definition": "...", "partOfSpeech": null, "example": null, "topic": null}]
}

Assertion categories: reading_passage, key_fact, discussion_prompt, answer_key_item.

Question types and conventions:
- MCQ: options lists every choice; correctAnswer is the correct option text
- TRUE_FALSE: question is the statement; correctAnswer is "True" or "False"
- MATCHING: options are the pairs "item -> match"; correctAnswer lists the pairing, e.g. "1-c, 2-a"
- FILL_BLANK: question marks the gap with ___; correctAnswer is the missing word(s)
- SHORT_ANSWER: a brief factual answer
- OPEN: discussion or opinion; correctAnswer may hold a model answer or be null
- UNSCRAMBLE: options are the scrambled words; correctAnswer is the restored sentence
- ORDERING: options are the items to order; correctAnswer is the correct sequence

Use the answer key when the document has one. Never invent answers the text does not support."""


ASSESSMENT_SYSTEM_PROMPT = """You extract from assessment or quiz material: questions, correct answers, mark schemes and common misconceptions.

Return ONLY a JSON object:
{
  "assertions": [{"assertion": "...", "category": "...", "chapter": null, "tags": [], "examRelevance": 0.0-1.0, "learningOutcomeRef": null}],
  "questions": [{"question": "...", "type": "MCQ|TRUE_FALSE|MATCHING|FILL_BLANK|SHORT_ANSWER|OPEN|UNSCRAMBLE|ORDERING", "options": [], "correctAnswer": "...", "explanation": null, "markScheme": null, "learningOutcomeRef": null, "difficulty": 1-5}]
}

Assertion categories:
- fact: a factual statement used in question context
- answer: a correct answer or marking point
- mark_scheme: a marking criterion or rubric point
- misconception: a common wrong answer or misunderstanding
- true_false: a statement with its answer
- matching_item: a pair from a matching exercise

Difficulty: 1 = recall, 3 = application, 5 = extended evaluation.
Put mark scheme text on the question it marks."""


# =============================================================================
# Extraction Request
# =============================================================================

EXTRACTION_USER_PROMPT = """Extract all teaching points from this {qualification}{document_label} material.

Valid categories:
{categories}
{focus}
If the text references figures, diagrams, images or tables (e.g. "Figure 1.2", "Fig. 3", "Diagram A"), add a "figureRefs" array to each assertion that depends on them.

Chunk {chunk_number} of {total_chunks}.
---
{chunk}
---"""


# =============================================================================
# Structuring Prompts
# =============================================================================

STRUCTURING_SYSTEM_PROMPT = """You organize extracted teaching points into a pedagogical pyramid.

Given flat assertions, build a hierarchy that follows the configured levels, branching into roughly the target number of children per node.

Rules:
- Every assertion hash must appear in exactly one leaf-level "detailHashes" list
- Higher levels get new synthesized text that frames their children
- Slugs are kebab-case (e.g. "temperature-control")
- Return valid JSON matching the requested shape"""


STRUCTURING_USER_PROMPT = """PYRAMID LEVELS:
{level_descriptions}

Target children per node: ~{target_child_count}
Total levels: {level_count} (depth 0 to {max_depth})

ASSERTIONS TO ORGANIZE ({assertion_count} total):
{assertion_list}

OUTPUT FORMAT:
Return a JSON object with exactly this nested shape:
{schema}

IMPORTANT:
- Reference assertions by their [hash] prefix inside "detailHashes" at the leaf level
- Write synthesized text for every non-leaf node
- Every hash listed above MUST appear in exactly one "detailHashes" array
- Return ONLY valid JSON"""


# =============================================================================
# Helper Functions
# =============================================================================

def format_prompt(template: str, **kwargs) -> str:
    """
    Format a prompt template with the given arguments.

    Args:
        template: Prompt template string
        **kwargs: Values to substitute

    Returns:
        Formatted prompt string
    """
    return template.format(**kwargs)
