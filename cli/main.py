#!/usr/bin/env python3
"""
Content Trust CLI.

Usage:
    content-trust classify unit-2.txt
    content-trust segment workbook.txt --json
    content-trust extract reader.txt --type COMPREHENSION
    content-trust structure assertions.json
    content-trust correct unit-2.txt --type WORKSHEET --original-type TEXTBOOK
    content-trust init-db
"""

import json
import logging
import sys
from pathlib import Path

import click


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _gateway(model):
    from content_trust.llm.gateway import CompletionGateway

    return CompletionGateway(model=model)


@click.group()
@click.version_option(version="1.0.0")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
def cli(verbose: bool):
    """Content Trust - educational document extraction CLI."""
    from content_trust.config import config

    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s")


# ============================================================================
# Analysis Commands
# ============================================================================

@cli.command()
@click.argument("text_path", type=click.Path(exists=True))
@click.option("--model", help="Gemini model override")
@click.option("--domain", "domain_id", help="Domain for few-shot corrections")
@click.option("--few-shot/--no-few-shot", default=False, help="Use stored corrections (needs Postgres)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def classify(text_path: str, model: str, domain_id: str, few_shot: bool, output_json: bool):
    """Classify a decoded document into a document type."""
    from content_trust.extraction_config import resolve_extraction_config
    from content_trust.ingest.classifier import DocumentClassifier

    source = None
    if few_shot:
        from content_trust.db.repositories import PostgresFewShotSource

        source = PostgresFewShotSource()

    path = Path(text_path)
    classifier = DocumentClassifier(_gateway(model), few_shot_source=source)
    result = classifier.classify(
        _read_text(text_path),
        path.name,
        resolve_extraction_config(None),
        domain_id=domain_id,
    )

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(click.style(f"\n{path.name}: {result.document_type}", fg="green", bold=True))
    click.echo(f"  Confidence: {result.confidence:.2f}")
    if result.few_shot_count:
        click.echo(f"  Few-shot examples: {result.few_shot_count}")
    if result.reasoning:
        click.echo(f"  Reasoning: {result.reasoning}")


@cli.command()
@click.argument("text_path", type=click.Path(exists=True))
@click.option("--model", help="Gemini model override")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def segment(text_path: str, model: str, output_json: bool):
    """Split a composite document into typed sections."""
    from content_trust.ingest.segmenter import DocumentSegmenter

    text = _read_text(text_path)
    result = DocumentSegmenter(_gateway(model)).segment(text, Path(text_path).name)

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    kind = "composite" if result.is_composite else "single"
    click.echo(f"\n{len(result.sections)} section(s), {kind}")
    if result.fallback_reason:
        click.echo(click.style(f"Fallback: {result.fallback_reason}", fg="yellow"))

    for i, section in enumerate(result.sections):
        click.echo(click.style(f"\n[{i+1}] {section.title}", fg="green", bold=True))
        click.echo(f"    Type: {section.section_type}  Role: {section.pedagogical_role}")
        click.echo(f"    Offsets: {section.start_offset}-{section.end_offset} ({section.length} chars)")
        flags = [name for name, on in (("questions", section.has_questions),
                                       ("answer key", section.has_answer_key)) if on]
        if flags:
            click.echo(f"    Contains: {', '.join(flags)}")


# ============================================================================
# Extraction Commands
# ============================================================================

@cli.command()
@click.argument("text_path", type=click.Path(exists=True))
@click.option("--type", "document_type", help="Declared document type (skips classification)")
@click.option("--qualification", "qualification_ref", help="Qualification reference")
@click.option("--source-id", help="Source id recorded on the results")
@click.option("--domain", "domain_id", help="Domain id")
@click.option("--max-assertions", type=int, help="Assertion cap")
@click.option("--model", help="Gemini model override")
@click.option("--save", is_flag=True, help="Store assertions in Postgres (needs --source-id)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def extract(text_path: str, document_type: str, qualification_ref: str, source_id: str,
            domain_id: str, max_assertions: int, model: str, save: bool, output_json: bool):
    """Run the full extraction pipeline on a decoded document."""
    from content_trust.ingest.models import SourceDocument
    from content_trust.ingest.pipeline import ExtractionPipeline

    if save and not source_id:
        raise click.UsageError("--save requires --source-id")

    path = Path(text_path)
    document = SourceDocument(
        text=_read_text(text_path),
        file_name=path.name,
        declared_type=document_type,
        qualification_ref=qualification_ref,
        source_id=source_id,
        domain_id=domain_id,
    )

    def progress(done, total, count):
        if not output_json:
            click.echo(f"  [{done}/{total}] {count} assertions")

    if not output_json:
        click.echo(f"\nExtracting: {path.name}")

    result = ExtractionPipeline(_gateway(model)).run(
        document,
        max_assertions=max_assertions,
        on_progress=progress,
    )

    if save and result.ok:
        from content_trust.db.repositories import save_extracted_assertions

        saved = save_extracted_assertions(source_id, result.assertions)
        if not output_json:
            click.echo(f"  Saved {saved} new assertions")

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            sys.exit(1)
        return

    if not result.ok:
        click.echo(click.style("✗ Extraction failed!", fg="red"))
        click.echo(f"  Error: {result.error}")
        sys.exit(1)

    click.echo(click.style("✓ Extraction complete", fg="green"))
    click.echo(f"  Type: {result.document_type}")
    click.echo(f"  Assertions: {len(result.assertions)}")
    click.echo(f"  Questions: {len(result.questions)}")
    click.echo(f"  Vocabulary: {len(result.vocabulary)}")
    click.echo(f"  Chunks: {result.chunks_processed} ({result.failed_chunks} failed)")
    click.echo(f"  Time: {result.elapsed_seconds:.1f}s")
    for warning in result.warnings:
        click.echo(click.style(f"  ! {warning}", fg="yellow"))


@cli.command()
@click.argument("input_path", type=click.Path(exists=True))
@click.argument("output_path", type=click.Path())
@click.option("--max-assertions", type=int, help="Assertion cap per document")
@click.option("--model", help="Gemini model override")
def batch(input_path: str, output_path: str, max_assertions: int, model: str):
    """Extract every document listed in a JSONL file."""
    from batch.extraction_job import ExtractionBatchJob
    from content_trust.ingest.pipeline import ExtractionPipeline

    job = ExtractionBatchJob(ExtractionPipeline(_gateway(model)), max_assertions=max_assertions)
    counts = job.run(Path(input_path), Path(output_path))

    click.echo(f"\n{'='*50}")
    click.echo(f"Succeeded: {counts['succeeded']}")
    click.echo(f"Failed: {counts['failed']}")
    if counts["failed"]:
        sys.exit(1)


# ============================================================================
# Structuring Commands
# ============================================================================

def _records_from_json(data, source_id: str):
    from content_trust.ingest.dedup import content_hash
    from content_trust.structuring.apply import AssertionRecord

    items = data.get("assertions", []) if isinstance(data, dict) else data
    records = []
    for i, item in enumerate(items):
        text = item.get("assertion") or item.get("text") or ""
        if not text.strip():
            continue
        records.append(
            AssertionRecord(
                id=f"{source_id}:{i}",
                source_id=source_id,
                text=text,
                content_hash=item.get("content_hash") or content_hash(text),
                category=item.get("category", "fact"),
            )
        )
    return records


@cli.command()
@click.argument("assertions_path", type=click.Path(exists=True), required=False)
@click.option("--source-id", default="local", help="Source whose assertions to structure")
@click.option("--type", "document_type", help="Document type for level config")
@click.option("--from-db", is_flag=True, help="Load assertions from Postgres and apply there")
@click.option("--model", help="Gemini model override")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def structure(assertions_path: str, source_id: str, document_type: str, from_db: bool,
              model: str, output_json: bool):
    """Organize assertions into a pyramid.

    Reads a JSON list of assertions (or the output of ``extract --json``),
    or with --from-db the stored assertions of --source-id.
    """
    from content_trust.exceptions import ContentTrustError
    from content_trust.extraction_config import resolve_extraction_config
    from content_trust.structuring import (
        InMemoryAssertionStore,
        StructuringEngine,
        apply_structure,
        levels_from_config,
    )

    if from_db:
        from content_trust.db.repositories import PostgresStructureExecutor, load_source_assertions

        records = load_source_assertions(source_id)
        executor = PostgresStructureExecutor()
    else:
        if not assertions_path:
            raise click.UsageError("Provide ASSERTIONS_PATH or --from-db")
        records = _records_from_json(json.loads(_read_text(assertions_path)), source_id)
        executor = InMemoryAssertionStore(records)

    facts = [r for r in records if not r.created_by_structuring]
    cfg = resolve_extraction_config(document_type)

    try:
        result = StructuringEngine(_gateway(model)).structure(facts, cfg)
        plan = apply_structure(result.tree, records, levels_from_config(cfg))
        executor.execute(source_id, plan)
    except ContentTrustError as e:
        click.echo(click.style(f"✗ Structuring failed: {e}", fg="red"), err=True)
        sys.exit(1)

    if output_json:
        payload = result.to_dict()
        payload["stats"] = plan.stats()
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(click.style(f"\n✓ {result.tree.text}", fg="green", bold=True))
    for key, value in plan.stats().items():
        click.echo(f"  {key}: {value}")
    for warning in result.warnings:
        click.echo(click.style(f"  ! {warning}", fg="yellow"))


# ============================================================================
# Admin Commands
# ============================================================================

@cli.command()
@click.argument("text_path", type=click.Path(exists=True))
@click.option("--type", "corrected_type", required=True, help="The correct document type")
@click.option("--original-type", help="The type the classifier chose")
@click.option("--domain", "domain_id", help="Domain the correction applies to")
@click.option("--sample-size", default=2000, show_default=True, help="Characters of text to keep")
def correct(text_path: str, corrected_type: str, original_type: str, domain_id: str,
            sample_size: int):
    """Record a classification correction for few-shot prompting."""
    from content_trust.db.repositories import record_correction
    from content_trust.ingest.classifier import FewShotExample, build_multi_point_sample
    from content_trust.ingest.models import DocumentType

    canonical = DocumentType.normalize(corrected_type)
    if canonical is None:
        raise click.UsageError(f"Unknown document type: {corrected_type}")

    path = Path(text_path)
    example = FewShotExample(
        sample=build_multi_point_sample(_read_text(text_path), sample_size),
        file_name=path.name,
        corrected_type=canonical,
        original_type=DocumentType.normalize(original_type),
        domain_id=domain_id,
    )
    record_correction(example)
    click.echo(click.style(f"✓ Recorded {path.name} as {canonical}", fg="green"))


@cli.command()
def init_db():
    """Initialize the Postgres schema."""
    from content_trust.db.postgres import init_schema

    click.echo("\nInitializing Postgres schema...")
    init_schema()
    click.echo(click.style("✓ Postgres schema initialized", fg="green"))


@cli.command()
def health():
    """Check configuration and database health."""
    from content_trust.config import config
    from content_trust.db.postgres import check_health

    for problem in config.validate():
        click.echo(click.style(f"! {problem}", fg="yellow"))

    status = check_health()
    color = {"healthy": "green", "degraded": "yellow"}.get(status["status"], "red")
    click.echo(click.style(f"Postgres: {status['status']}", fg=color, bold=True))
    if status.get("error"):
        click.echo(f"  Error: {status['error']}")
    else:
        click.echo(f"  Tables: {', '.join(status['tables']) or 'none'}")


# ============================================================================
# Main Entry Point
# ============================================================================

def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
