"""
Extraction configuration for Content Trust.

The config is a plain nested dict (it round-trips through the database as
JSON, hence the camelCase keys). A run resolves it by deep-merging:

    DEFAULT_CONFIG <- system override <- domain override <- type override

Later layers win and arrays replace rather than concatenate. TEXTBOOK is the
reference type and has no override of its own.

Usage:
    from content_trust.extraction_config import resolve_extraction_config

    cfg = resolve_extraction_config("CURRICULUM")
    cfg["extraction"]["categories"]  # curriculum category vocabulary
"""

import copy
import logging
from typing import Optional

from content_trust import prompts
from content_trust.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _category(id: str, label: str, description: str) -> dict:
    return {"id": id, "label": label, "description": description}


def _level(depth: int, label: str, max_children: int, render_as: str, description: str) -> dict:
    return {
        "depth": depth,
        "label": label,
        "maxChildren": max_children,
        "renderAs": render_as,
        "description": description,
    }


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_CONFIG: dict = {
    "extraction": {
        "systemPrompt": prompts.EXTRACTION_SYSTEM_PROMPT,
        "categories": [
            _category("fact", "Fact", "A specific factual statement"),
            _category("definition", "Definition", "Defines a term or concept"),
            _category("threshold", "Threshold", "A numeric limit or boundary value"),
            _category("rule", "Rule", "A regulation or requirement"),
            _category("process", "Process", "A step in a procedure"),
            _category("example", "Example", "An illustrative example"),
        ],
        "defaultCategory": "fact",
        "llmConfig": {"temperature": 0.1, "maxTokens": 4000},
        "chunkSize": 8000,
        "maxAssertionsPerDocument": 500,
        "rules": {
            "requireExactNumbers": True,
            "maxAssertionLength": 500,
            "dedupByContentHash": True,
        },
    },
    "structuring": {
        "systemPrompt": prompts.STRUCTURING_SYSTEM_PROMPT,
        "levels": [
            _level(0, "overview", 1, "paragraph", "One-paragraph summary of the whole source"),
            _level(1, "topic", 7, "heading", "Major subject area grouping related points"),
            _level(2, "key_point", 4, "bold", "Central idea within a topic"),
            _level(3, "detail", 4, "bullet", "Individual assertion from the source"),
        ],
        "targetChildCount": 3,
        "llmConfig": {"temperature": 0.2, "maxTokens": 8000},
    },
    "rendering": {
        "defaultMaxDepth": 3,
        "depthAdaptation": {"entryLevel": -1, "fineGrained": 1},
    },
    "classification": {
        "systemPrompt": prompts.CLASSIFICATION_SYSTEM_PROMPT,
        "llmConfig": {"temperature": 0.1, "maxTokens": 500},
        "sampleSize": 2000,
        "fewShot": {
            "enabled": True,
            "maxExamples": 5,
            "exampleSampleSize": 500,
            "domainAware": True,
        },
    },
    "sectionFilter": {
        "skipTitlePatterns": [],
        "referenceTitlePatterns": [
            "answer key",
            "answers",
            "glossary",
            "teacher notes",
            "mark scheme",
            "solutions",
        ],
        "minSectionChars": 50,
    },
    "contentLinking": {
        "enabled": True,
        "loRefMatchBoost": 1.0,
        "chapterMatchBoost": 0.3,
        "minKeywordScore": 0.1,
        "minLinkScore": 0.2,
    },
    "typeOverrides": {
        "CURRICULUM": {
            "extraction": {
                "systemPrompt": prompts.CURRICULUM_SYSTEM_PROMPT,
                "categories": [
                    _category("learning_outcome", "Learning Outcome", "A formal LO statement"),
                    _category("assessment_criterion", "Assessment Criterion", "An AC under an LO"),
                    _category("range", "Range", "A range or scope statement"),
                    _category("definition", "Definition", "A term defined by the syllabus"),
                    _category("rule", "Rule", "A regulatory or procedural requirement"),
                ],
                "defaultCategory": "assessment_criterion",
            },
            "structuring": {
                "levels": [
                    _level(0, "module", 1, "paragraph", "The unit or module as a whole"),
                    _level(1, "learning_outcome", 8, "heading", "One formal Learning Outcome"),
                    _level(2, "assessment_criterion", 6, "bold", "An Assessment Criterion under the LO"),
                    _level(3, "range_detail", 6, "bullet", "Range statements and definitions"),
                ],
            },
        },
        "WORKSHEET": {
            "extraction": {
                "systemPrompt": prompts.WORKSHEET_SYSTEM_PROMPT,
                "categories": [
                    _category("question", "Question", "A question or task for the learner"),
                    _category("true_false", "True/False", "A statement with its answer"),
                    _category("matching_exercise", "Matching", "An item -> match pair"),
                    _category("vocabulary_exercise", "Vocabulary", "A term -> definition pair"),
                    _category("activity", "Activity", "An activity instruction"),
                    _category("discussion_prompt", "Discussion", "An open discussion question"),
                    _category("information", "Information", "Key teaching content"),
                    _category("reference", "Reference", "Reference data or sources"),
                    _category("answer_key_item", "Answer", "An answer from an answer key"),
                ],
                "defaultCategory": "information",
                "maxAssertionsPerDocument": 200,
            },
        },
        "EXAMPLE": {
            "extraction": {
                "systemPrompt": prompts.EXAMPLE_SYSTEM_PROMPT,
                "categories": [
                    _category("concept", "Concept", "A concept the example illustrates"),
                    _category("observation", "Observation", "Something notable in the document"),
                    _category("discussion_point", "Discussion Point", "A point to raise"),
                    _category("context", "Context", "Background context"),
                ],
                "defaultCategory": "observation",
                "maxAssertionsPerDocument": 50,
            },
        },
        "ASSESSMENT": {
            "extraction": {
                "systemPrompt": prompts.ASSESSMENT_SYSTEM_PROMPT,
                "categories": [
                    _category("question", "Question", "An assessment question"),
                    _category("answer", "Answer", "A correct answer or marking point"),
                    _category("true_false", "True/False", "A statement with its answer"),
                    _category("matching_item", "Matching Item", "A pair from a matching exercise"),
                    _category("misconception", "Misconception", "A common wrong answer"),
                    _category("fact", "Fact", "A fact used in question context"),
                    _category("mark_scheme", "Mark Scheme", "A marking criterion"),
                ],
                "defaultCategory": "fact",
            },
        },
        "REFERENCE": {
            "extraction": {
                "systemPrompt": prompts.REFERENCE_SYSTEM_PROMPT,
                "categories": [
                    _category("definition", "Definition", "A term definition"),
                    _category("threshold", "Threshold", "A numeric limit"),
                    _category("rule", "Rule", "A rule or regulation"),
                    _category("fact", "Fact", "A key value or fact"),
                ],
                "maxAssertionsPerDocument": 200,
            },
            "structuring": {
                "levels": [
                    _level(0, "topic", 10, "heading", "Reference topic"),
                    _level(1, "term", 20, "bullet", "Individual lookup item"),
                ],
            },
        },
        "COMPREHENSION": {
            "extraction": {
                "systemPrompt": prompts.COMPREHENSION_SYSTEM_PROMPT,
                "categories": [
                    _category("reading_passage", "Reading Passage", "Content from the passage"),
                    _category("comprehension_question", "Question", "A comprehension question"),
                    _category("answer", "Answer", "An answer to a question"),
                    _category("vocabulary_item", "Vocabulary", "A vocabulary term"),
                    _category("discussion_prompt", "Discussion", "An open discussion question"),
                    _category("matching_exercise", "Matching", "An item -> match pair"),
                    _category("true_false", "True/False", "A statement with its answer"),
                    _category("key_fact", "Key Fact", "An important fact from the passage"),
                    _category("answer_key_item", "Answer Key", "An answer key entry"),
                ],
                "defaultCategory": "key_fact",
                "maxAssertionsPerDocument": 300,
            },
        },
        "LESSON_PLAN": {
            "extraction": {
                "systemPrompt": prompts.LESSON_PLAN_SYSTEM_PROMPT,
                "categories": [
                    _category("objective", "Objective", "A lesson objective"),
                    _category("activity", "Activity", "A planned activity"),
                    _category("timing", "Timing", "A timing allocation"),
                    _category("resource", "Resource", "A required resource"),
                    _category("differentiation", "Differentiation", "Support or stretch"),
                    _category("assessment_opportunity", "Assessment", "A check for learning"),
                    _category("plenary", "Plenary", "A closing activity"),
                    _category("starter", "Starter", "An opening activity"),
                ],
                "defaultCategory": "activity",
                "maxAssertionsPerDocument": 100,
            },
        },
        "POLICY_DOCUMENT": {
            "extraction": {
                "systemPrompt": prompts.POLICY_SYSTEM_PROMPT,
                "categories": [
                    _category("safety_point", "Safety Point", "A safety instruction"),
                    _category("procedure", "Procedure", "A procedural step"),
                    _category("legal_requirement", "Legal Requirement", "A legal obligation"),
                    _category("hazard", "Hazard", "An identified hazard"),
                    _category("control_measure", "Control Measure", "A control for a hazard"),
                    _category("record_requirement", "Record", "A record-keeping duty"),
                    _category("corrective_action", "Corrective Action", "Action on failure"),
                    _category("key_fact", "Key Fact", "A key fact or value"),
                ],
                "defaultCategory": "key_fact",
                "maxAssertionsPerDocument": 300,
            },
        },
    },
}

# Fields a resolved config must carry before any completion call is made
REQUIRED_FIELDS = (
    ("extraction", "systemPrompt"),
    ("extraction", "categories"),
    ("extraction", "chunkSize"),
    ("extraction", "maxAssertionsPerDocument"),
    ("structuring", "systemPrompt"),
    ("structuring", "levels"),
    ("structuring", "targetChildCount"),
    ("classification", "systemPrompt"),
    ("classification", "sampleSize"),
)


# =============================================================================
# Merging
# =============================================================================

def deep_merge(base: dict, override: Optional[dict]) -> dict:
    """
    Merge ``override`` into a copy of ``base``.

    Nested dicts merge key by key; lists and scalars from the override
    replace the base value. ``None`` values in the override are ignored.
    """
    result = copy.deepcopy(base)
    if not override:
        return result

    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def apply_type_overrides(cfg: dict, document_type: Optional[str]) -> dict:
    """Merge the override block for ``document_type`` into ``cfg``."""
    if not document_type or document_type == "TEXTBOOK":
        return cfg

    override = cfg.get("typeOverrides", {}).get(document_type)
    if not override:
        return cfg

    logger.debug(f"Applying type override for {document_type}")
    merged = copy.deepcopy(cfg)
    for section in ("extraction", "structuring", "rendering", "classification"):
        if section in override:
            merged[section] = deep_merge(merged.get(section, {}), override[section])
    return merged


def resolve_extraction_config(
    document_type: Optional[str] = None,
    system_override: Optional[dict] = None,
    domain_override: Optional[dict] = None,
) -> dict:
    """
    Resolve the effective config for one run.

    Args:
        document_type: Document type whose override applies last
        system_override: Deployment-wide overrides
        domain_override: Overrides for one subject domain

    Returns:
        Validated config dict

    Raises:
        ConfigurationError: if a required field is missing after merging
    """
    cfg = deep_merge(DEFAULT_CONFIG, system_override)
    cfg = deep_merge(cfg, domain_override)
    cfg = apply_type_overrides(cfg, document_type)
    validate_extraction_config(cfg)
    return cfg


def validate_extraction_config(cfg: dict) -> None:
    """Raise ConfigurationError listing every missing or malformed field."""
    problems = []

    for section, key in REQUIRED_FIELDS:
        block = cfg.get(section)
        if not isinstance(block, dict):
            problems.append(f"missing section '{section}'")
            continue
        value = block.get(key)
        if value is None or value == "" or value == []:
            problems.append(f"missing '{section}.{key}'")

    extraction = cfg.get("extraction") or {}
    for i, cat in enumerate(extraction.get("categories") or []):
        if not isinstance(cat, dict) or not cat.get("id"):
            problems.append(f"extraction.categories[{i}] has no id")

    structuring = cfg.get("structuring") or {}
    depths = []
    for i, level in enumerate(structuring.get("levels") or []):
        if not isinstance(level, dict) or "depth" not in level or not level.get("label"):
            problems.append(f"structuring.levels[{i}] needs depth and label")
        else:
            depths.append(level["depth"])
    if depths and sorted(depths) != list(range(len(depths))):
        problems.append(f"structuring.levels depths must be 0..n-1, got {sorted(depths)}")

    chunk_size = extraction.get("chunkSize")
    if isinstance(chunk_size, int) and chunk_size <= 0:
        problems.append(f"extraction.chunkSize must be > 0, got {chunk_size}")

    if problems:
        raise ConfigurationError("Invalid extraction config: " + "; ".join(problems))


# =============================================================================
# Accessors
# =============================================================================

def get_category_ids(cfg: dict) -> list[str]:
    """Valid category ids for extraction."""
    return [c["id"] for c in cfg.get("extraction", {}).get("categories", [])]
