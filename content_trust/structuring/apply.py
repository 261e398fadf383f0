"""
Materializing a pyramid.

``apply_structure`` is pure: it walks the tree depth-first and returns the
operations needed (new parent nodes, re-parented facts) without touching
storage. Executors apply a plan for one source. They first remove nodes a
previous run created and reset every fact's links, all in one transaction,
so applying the same plan twice leaves the same state.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from content_trust.exceptions import StructuringError
from content_trust.ingest.dedup import content_hash
from content_trust.structuring.pyramid import PyramidLevel, PyramidNode, max_depth

logger = logging.getLogger(__name__)

OVERVIEW_CATEGORY = "overview"
SUMMARY_CATEGORY = "summary"


@dataclass
class AssertionRecord:
    """A stored assertion row as the structuring layer sees it."""

    id: str
    source_id: str
    text: str
    content_hash: str
    category: str
    parent_id: Optional[str] = None
    depth: Optional[int] = None
    order_index: int = 0
    topic_slug: Optional[str] = None
    created_by_structuring: bool = False


@dataclass
class CreateNodeOp:
    """Create a parent node. ``key`` is its tree path, e.g. ``"0.2.1"``."""

    key: str
    parent_key: Optional[str]
    text: str
    slug: Optional[str]
    category: str
    depth: int
    order_index: int
    content_hash: str


@dataclass
class ReparentOp:
    """Attach an existing fact to a created node."""

    assertion_id: str
    parent_key: str
    depth: int
    order_index: int
    topic_slug: Optional[str]


@dataclass
class StructurePlan:
    max_depth: int
    create_ops: list[CreateNodeOp] = field(default_factory=list)
    reparent_ops: list[ReparentOp] = field(default_factory=list)
    orphan_count: int = 0
    duplicate_count: int = 0
    unknown_count: int = 0
    levels_used: set[int] = field(default_factory=set)

    @property
    def nodes_created(self) -> int:
        return len(self.create_ops)

    @property
    def assertions_linked(self) -> int:
        return len(self.reparent_ops)

    def stats(self) -> dict:
        return {
            "levels_used": len(self.levels_used),
            "nodes_created": self.nodes_created,
            "assertions_linked": self.assertions_linked,
            "orphan_count": self.orphan_count,
            "duplicate_count": self.duplicate_count,
            "unknown_count": self.unknown_count,
        }


def apply_structure(
    tree: PyramidNode,
    existing_assertions: list[AssertionRecord],
    levels: list[PyramidLevel],
) -> StructurePlan:
    """
    Plan the operations that materialize ``tree`` over existing facts.

    Every tree node becomes a new record (``overview`` at the root,
    ``summary`` below). Facts referenced by a node's detail hashes are
    re-parented under it at ``depth + 1`` in list order; a hash listed
    twice links only at its first occurrence. Records created by a
    previous run are ignored as link targets.
    """
    facts = [a for a in existing_assertions if not a.created_by_structuring]
    by_hash = {}
    for record in facts:
        by_hash.setdefault(record.content_hash or content_hash(record.text), record)

    plan = StructurePlan(max_depth=max_depth(levels))
    linked = set()

    def visit(node: PyramidNode, depth: int, key: str, parent_key: Optional[str],
              order_index: int, inherited_slug: Optional[str]):
        slug = node.slug or inherited_slug
        plan.levels_used.add(depth)
        plan.create_ops.append(
            CreateNodeOp(
                key=key,
                parent_key=parent_key,
                text=node.text,
                slug=slug,
                category=OVERVIEW_CATEGORY if depth == 0 else SUMMARY_CATEGORY,
                depth=depth,
                order_index=order_index,
                content_hash=content_hash(node.text),
            )
        )

        for i, detail_hash in enumerate(node.detail_hashes):
            if detail_hash in linked:
                plan.duplicate_count += 1
                logger.error(f"Hash {detail_hash} already linked, ignoring repeat at {key}")
                continue
            record = by_hash.get(detail_hash)
            if record is None:
                plan.unknown_count += 1
                continue
            linked.add(detail_hash)
            plan.reparent_ops.append(
                ReparentOp(
                    assertion_id=record.id,
                    parent_key=key,
                    depth=depth + 1,
                    order_index=i,
                    topic_slug=slug,
                )
            )

        for i, child in enumerate(node.children):
            visit(child, depth + 1, f"{key}.{i}", key, i, child.slug or slug)

    visit(tree, 0, "0", None, 0, tree.slug)

    plan.orphan_count = sum(1 for h in by_hash if h not in linked)
    if plan.orphan_count:
        logger.warning(f"{plan.orphan_count} assertions left unlinked by the pyramid")
    return plan


# =============================================================================
# Executors
# =============================================================================

class StructureExecutor(ABC):
    """Applies a plan to storage for one source, atomically."""

    @abstractmethod
    def execute(self, source_id: str, plan: StructurePlan) -> dict[str, str]:
        """Apply the plan; returns node key -> created record id."""


class InMemoryAssertionStore(StructureExecutor):
    """Dict-backed assertion store, used by tests and dry runs."""

    def __init__(self, records: Optional[list[AssertionRecord]] = None):
        self.records: dict[str, AssertionRecord] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self.records[record.id] = record

    def add(self, record: AssertionRecord):
        with self._lock:
            self.records[record.id] = record

    def load_source(self, source_id: str) -> list[AssertionRecord]:
        with self._lock:
            return [copy.copy(r) for r in self.records.values() if r.source_id == source_id]

    def execute(self, source_id: str, plan: StructurePlan) -> dict[str, str]:
        with self._lock:
            # Work on a copy and swap at the end so a failure changes nothing
            working = {
                rid: copy.copy(r) for rid, r in self.records.items()
                if not (r.source_id == source_id and r.created_by_structuring)
            }
            for record in working.values():
                if record.source_id == source_id:
                    record.parent_id = None
                    record.depth = plan.max_depth
                    record.order_index = 0
                    record.topic_slug = None

            key_to_id = {}
            for op in plan.create_ops:
                record_id = f"{source_id}:node:{op.key}"
                working[record_id] = AssertionRecord(
                    id=record_id,
                    source_id=source_id,
                    text=op.text,
                    content_hash=op.content_hash,
                    category=op.category,
                    parent_id=key_to_id.get(op.parent_key) if op.parent_key else None,
                    depth=op.depth,
                    order_index=op.order_index,
                    topic_slug=op.slug,
                    created_by_structuring=True,
                )
                key_to_id[op.key] = record_id

            for op in plan.reparent_ops:
                record = working.get(op.assertion_id)
                if record is None or record.source_id != source_id:
                    raise StructuringError(
                        f"Plan references assertion {op.assertion_id} not in source {source_id}"
                    )
                record.parent_id = key_to_id[op.parent_key]
                record.depth = op.depth
                record.order_index = op.order_index
                record.topic_slug = op.topic_slug

            self.records = working

        logger.info(
            f"Applied structure to {source_id}: {plan.nodes_created} nodes, "
            f"{plan.assertions_linked} linked"
        )
        return key_to_id
