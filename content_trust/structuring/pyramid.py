"""
Pyramid structuring engine.

Organizes a source's flat assertions into a hierarchy whose shape (levels,
branching) comes from the extraction config. The model synthesizes text for
internal nodes and partitions the assertion hashes across leaf nodes; the
partition is verified afterwards and every gap is reported.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from content_trust.exceptions import JSONRecoveryError, StructuringError
from content_trust.ingest.dedup import content_hash
from content_trust.llm.gateway import CompletionGateway, ModelParams
from content_trust.llm.json_recovery import recover_json
from content_trust.prompts import STRUCTURING_USER_PROMPT, format_prompt

logger = logging.getLogger(__name__)


@dataclass
class PyramidLevel:
    depth: int
    label: str
    max_children: int = 4
    render_as: str = "bullet"
    description: str = ""


def levels_from_config(config: dict) -> list[PyramidLevel]:
    """Configured pyramid levels, ordered by depth."""
    levels = [
        PyramidLevel(
            depth=int(raw["depth"]),
            label=raw["label"],
            max_children=int(raw.get("maxChildren", 4)),
            render_as=raw.get("renderAs", "bullet"),
            description=raw.get("description", ""),
        )
        for raw in config.get("structuring", {}).get("levels", [])
    ]
    return sorted(levels, key=lambda level: level.depth)


def max_depth(levels: list[PyramidLevel]) -> int:
    return max((level.depth for level in levels), default=0)


def _clean_hash(value) -> str:
    return str(value).strip().strip("[]").strip()


@dataclass
class PyramidNode:
    """A node of the proposed pyramid. Leaves carry ``detail_hashes``."""

    text: str
    slug: Optional[str] = None
    children: list["PyramidNode"] = field(default_factory=list)
    detail_hashes: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "PyramidNode":
        children = data.get("children")
        hashes = data.get("detailHashes")
        return cls(
            text=str(data.get("text") or "").strip(),
            slug=(str(data["slug"]).strip() or None) if data.get("slug") else None,
            children=[
                cls.from_dict(child) for child in (children if isinstance(children, list) else [])
                if isinstance(child, dict)
            ],
            detail_hashes=[
                _clean_hash(h) for h in (hashes if isinstance(hashes, list) else [])
                if h is not None and _clean_hash(h)
            ],
        )

    def to_dict(self) -> dict:
        data = {"text": self.text, "slug": self.slug}
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        if self.detail_hashes:
            data["detailHashes"] = list(self.detail_hashes)
        return data

    def iter(self) -> Iterator["PyramidNode"]:
        """Depth-first, pre-order."""
        yield self
        for child in self.children:
            yield from child.iter()

    def count_nodes(self) -> int:
        return sum(1 for _ in self.iter())


# =============================================================================
# Prompt
# =============================================================================

def _schema_node(levels: list[PyramidLevel], index: int) -> dict:
    level = levels[index]
    if index == len(levels) - 1:
        return {
            "text": f"{level.label} text",
            "slug": f"{level.label.replace('_', '-')}-slug",
            "detailHashes": ["hash1", "hash2", "hash3"],
        }
    return {
        "text": f"{level.label} text (synthesized)",
        "slug": f"{level.label.replace('_', '-')}-slug",
        "children": [_schema_node(levels, index + 1)],
    }


def build_schema_description(levels: list[PyramidLevel]) -> str:
    """Example of the exact nested shape expected back, one node per level."""
    if not levels:
        raise StructuringError("No pyramid levels configured")
    return json.dumps(_schema_node(levels, 0), indent=2)


def build_structuring_prompt(config: dict, assertions: Iterable) -> str:
    """
    Build the user prompt listing every assertion as ``[hash] (category) text``.

    ``assertions`` may be ExtractedAssertion or AssertionRecord objects.
    """
    structuring = config["structuring"]
    levels = levels_from_config(config)
    assertions = list(assertions)

    level_descriptions = "\n".join(
        f"  Level {level.depth} ({level.label}): {level.description or level.label}. "
        f"Max {level.max_children} children."
        for level in levels
    )
    assertion_list = "\n".join(
        f"[{a.content_hash or content_hash(a.text)}] ({a.category}) {a.text}"
        for a in assertions
    )

    return format_prompt(
        STRUCTURING_USER_PROMPT,
        level_descriptions=level_descriptions,
        target_child_count=structuring.get("targetChildCount", 3),
        level_count=len(levels),
        max_depth=max_depth(levels),
        assertion_count=len(assertions),
        assertion_list=assertion_list,
        schema=build_schema_description(levels),
    )


# =============================================================================
# Verification
# =============================================================================

@dataclass
class PartitionReport:
    """How well the leaf hashes partition the input hashes."""

    orphans: list[str] = field(default_factory=list)     # input hashes no leaf references
    duplicates: list[str] = field(default_factory=list)  # hashes referenced more than once
    unknown: list[str] = field(default_factory=list)     # referenced hashes not in the input

    @property
    def is_complete(self) -> bool:
        return not (self.orphans or self.duplicates or self.unknown)

    def to_dict(self) -> dict:
        return {
            "orphans": list(self.orphans),
            "duplicates": list(self.duplicates),
            "unknown": list(self.unknown),
        }


def verify_partition(tree: PyramidNode, hashes: Iterable[str]) -> PartitionReport:
    """Check that every input hash appears in exactly one leaf list."""
    expected = list(dict.fromkeys(hashes))
    expected_set = set(expected)
    counts = Counter(h for node in tree.iter() for h in node.detail_hashes)

    return PartitionReport(
        orphans=[h for h in expected if h not in counts],
        duplicates=[h for h, n in counts.items() if n > 1],
        unknown=[h for h in counts if h not in expected_set],
    )


# =============================================================================
# Engine
# =============================================================================

@dataclass
class StructuringResult:
    tree: PyramidNode
    report: PartitionReport
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tree": self.tree.to_dict(),
            "report": self.report.to_dict(),
            "warnings": list(self.warnings),
        }


class StructuringEngine:
    """
    Ask the completion model to organize assertions into a pyramid.

    Usage:
        engine = StructuringEngine(gateway)
        result = engine.structure(assertions, cfg)
        plan = apply_structure(result.tree, records, levels_from_config(cfg))
    """

    def __init__(self, gateway: CompletionGateway):
        self.gateway = gateway

    def structure(self, assertions: list, config: dict) -> StructuringResult:
        """
        Build the pyramid for a set of assertions.

        Raises:
            StructuringError: no assertions, or unusable model output
            CompletionError: the model could not be reached
        """
        if not assertions:
            raise StructuringError("No assertions to structure")

        structuring = config["structuring"]
        hashes = [a.content_hash or content_hash(a.text) for a in assertions]

        raw = self.gateway.invoke(
            structuring["systemPrompt"],
            build_structuring_prompt(config, assertions),
            call_point="structure",
            model_params=ModelParams.from_llm_config(structuring.get("llmConfig")),
            metadata={"assertion_count": len(assertions)},
            raise_on_exhaustion=True,
        )

        try:
            data = recover_json(raw, context="structure").parsed
        except JSONRecoveryError as e:
            raise StructuringError(f"Structuring output could not be parsed: {e}") from e
        if not isinstance(data, dict):
            raise StructuringError(
                f"Structuring output must be a JSON object, got {type(data).__name__}"
            )

        tree = PyramidNode.from_dict(data)
        report = verify_partition(tree, hashes)
        warnings = []

        if report.orphans:
            warnings.append(
                f"{len(report.orphans)} assertions were not referenced in the pyramid structure"
            )
            logger.warning(f"Structuring left {len(report.orphans)} orphan assertions")
        if report.duplicates:
            warnings.append(
                f"{len(report.duplicates)} assertions were referenced by more than one leaf"
            )
            logger.error(
                f"Structuring invariant violated: duplicated hashes {report.duplicates[:10]}"
            )
        if report.unknown:
            warnings.append(f"{len(report.unknown)} referenced hashes match no assertion")
            logger.warning(f"Structuring referenced unknown hashes {report.unknown[:10]}")

        logger.info(
            f"Structured {len(assertions)} assertions into {tree.count_nodes()} nodes"
        )
        return StructuringResult(tree=tree, report=report, warnings=warnings)
