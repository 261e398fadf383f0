"""Pyramid structuring of extracted assertions."""

from content_trust.structuring.apply import (
    AssertionRecord,
    InMemoryAssertionStore,
    StructureExecutor,
    StructurePlan,
    apply_structure,
)
from content_trust.structuring.pyramid import (
    PartitionReport,
    PyramidLevel,
    PyramidNode,
    StructuringEngine,
    StructuringResult,
    build_schema_description,
    build_structuring_prompt,
    levels_from_config,
    max_depth,
    verify_partition,
)

__all__ = [
    "AssertionRecord",
    "InMemoryAssertionStore",
    "PartitionReport",
    "PyramidLevel",
    "PyramidNode",
    "StructureExecutor",
    "StructurePlan",
    "StructuringEngine",
    "StructuringResult",
    "apply_structure",
    "build_schema_description",
    "build_structuring_prompt",
    "levels_from_config",
    "max_depth",
    "verify_partition",
]
