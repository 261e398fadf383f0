"""
Postgres-backed collaborators.

- PostgresFewShotSource: classification corrections for few-shot prompts
- load_source_assertions / save_extracted_assertions: assertion rows
- PostgresStructureExecutor: applies a StructurePlan in one transaction
"""

import logging
from typing import Callable, Optional

import psycopg

from content_trust.db.postgres import get_pg_connection
from content_trust.exceptions import StructuringError
from content_trust.ingest.classifier import FewShotExample, FewShotSource
from content_trust.ingest.models import ExtractedAssertion
from content_trust.structuring.apply import AssertionRecord, StructureExecutor, StructurePlan

logger = logging.getLogger(__name__)


class PostgresFewShotSource(FewShotSource):
    """Reads human classification corrections, newest first."""

    def __init__(self, connection_factory: Callable = get_pg_connection):
        self._connect = connection_factory

    def fetch(self, domain_id: Optional[str], limit: int) -> list[FewShotExample]:
        if domain_id is None:
            query = (
                "SELECT file_name, text_sample, original_type, corrected_type, domain_id "
                "FROM classification_corrections ORDER BY created_at DESC LIMIT %s"
            )
            params = (limit,)
        else:
            query = (
                "SELECT file_name, text_sample, original_type, corrected_type, domain_id "
                "FROM classification_corrections WHERE domain_id = %s "
                "ORDER BY created_at DESC LIMIT %s"
            )
            params = (domain_id, limit)

        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()

        return [
            FewShotExample(
                sample=row["text_sample"],
                file_name=row["file_name"],
                corrected_type=row["corrected_type"],
                original_type=row["original_type"],
                domain_id=row["domain_id"],
            )
            for row in rows
        ]


def record_correction(
    example: FewShotExample,
    connection_factory: Callable = get_pg_connection,
) -> None:
    """Store a human correction so future classifications can learn from it."""
    with connection_factory() as conn:
        conn.execute(
            "INSERT INTO classification_corrections "
            "(domain_id, file_name, text_sample, original_type, corrected_type) "
            "VALUES (%s, %s, %s, %s, %s)",
            (
                example.domain_id,
                example.file_name,
                example.sample,
                example.original_type,
                example.corrected_type,
            ),
        )
        conn.commit()


def load_source_assertions(
    source_id: str,
    connection_factory: Callable = get_pg_connection,
) -> list[AssertionRecord]:
    """All assertion rows of a source, in insertion order."""
    with connection_factory() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT id, source_id, assertion, content_hash, category, parent_id, "
                "depth, order_index, topic_slug, created_by_structuring "
                "FROM content_assertions WHERE source_id = %s ORDER BY created_at, id",
                (source_id,),
            )
            rows = cur.fetchall()

    return [
        AssertionRecord(
            id=row["id"],
            source_id=row["source_id"],
            text=row["assertion"],
            content_hash=row["content_hash"],
            category=row["category"],
            parent_id=row["parent_id"],
            depth=row["depth"],
            order_index=row["order_index"],
            topic_slug=row["topic_slug"],
            created_by_structuring=row["created_by_structuring"],
        )
        for row in rows
    ]


def save_extracted_assertions(
    source_id: str,
    assertions: list[ExtractedAssertion],
    connection_factory: Callable = get_pg_connection,
) -> int:
    """Insert extracted assertions, skipping hashes the source already has."""
    with connection_factory() as conn:
        with conn.transaction():
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT content_hash FROM content_assertions WHERE source_id = %s",
                    (source_id,),
                )
                existing = {row["content_hash"] for row in cur.fetchall()}
                new_rows = [
                    (source_id, a.text, a.content_hash, a.category, a.chapter, a.tags)
                    for a in assertions
                    if a.content_hash not in existing
                ]
                if new_rows:
                    cur.executemany(
                        "INSERT INTO content_assertions "
                        "(source_id, assertion, content_hash, category, chapter, tags) "
                        "VALUES (%s, %s, %s, %s, %s, %s)",
                        new_rows,
                    )

    logger.info(f"Saved {len(new_rows)} new assertions for {source_id}")
    return len(new_rows)


class PostgresStructureExecutor(StructureExecutor):
    """Applies a StructurePlan to ``content_assertions`` in one transaction."""

    def __init__(self, connection_factory: Callable = get_pg_connection):
        self._connect = connection_factory

    def execute(self, source_id: str, plan: StructurePlan) -> dict[str, str]:
        key_to_id = {}
        try:
            with self._connect() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        # Detach facts first so deleting old nodes cascades nothing
                        cur.execute(
                            "UPDATE content_assertions SET parent_id = NULL, depth = %s, "
                            "order_index = 0, topic_slug = NULL "
                            "WHERE source_id = %s AND NOT created_by_structuring",
                            (plan.max_depth, source_id),
                        )
                        cur.execute(
                            "DELETE FROM content_assertions "
                            "WHERE source_id = %s AND created_by_structuring",
                            (source_id,),
                        )

                        for op in plan.create_ops:
                            cur.execute(
                                "INSERT INTO content_assertions "
                                "(source_id, assertion, content_hash, category, parent_id, "
                                "depth, order_index, topic_slug, created_by_structuring) "
                                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, TRUE) RETURNING id",
                                (
                                    source_id,
                                    op.text,
                                    op.content_hash,
                                    op.category,
                                    key_to_id.get(op.parent_key) if op.parent_key else None,
                                    op.depth,
                                    op.order_index,
                                    op.slug,
                                ),
                            )
                            key_to_id[op.key] = cur.fetchone()["id"]

                        for op in plan.reparent_ops:
                            cur.execute(
                                "UPDATE content_assertions SET parent_id = %s, depth = %s, "
                                "order_index = %s, topic_slug = %s "
                                "WHERE id = %s AND source_id = %s",
                                (
                                    key_to_id[op.parent_key],
                                    op.depth,
                                    op.order_index,
                                    op.topic_slug,
                                    op.assertion_id,
                                    source_id,
                                ),
                            )
                            if cur.rowcount != 1:
                                raise StructuringError(
                                    f"Plan references assertion {op.assertion_id} "
                                    f"not in source {source_id}"
                                )
        except psycopg.Error as e:
            raise StructuringError(f"Failed to apply structure for {source_id}: {e}") from e

        logger.info(
            f"Applied structure to {source_id}: {plan.nodes_created} nodes, "
            f"{plan.assertions_linked} linked"
        )
        return key_to_id
