"""Operator CLI for the policyLens knowledge base.

Usage::

    python -m src.cli ingest "CCHP Alabama Telehealth Laws Report.pdf"
    python -m src.cli ingest notes.txt --region "Alabama" --keep-file
    python -m src.cli search "audio-only coverage" --region Alabama --top-k 3
    python -m src.cli ask "Is store-and-forward reimbursed?" --region Alabama
    python -m src.cli extract-facts 2f0c...
    python -m src.cli status --status failed
    python -m src.cli regions --missing

Ingestion is refused unless ``ALLOW_INGEST=true`` is set.  Exit codes are
0 on success, 1 on an operational failure (provider down, document failed)
and 2 on a usage or configuration error.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError

from src.config.settings import Settings
from src.main import PolicyEngine, build_engine
from src.models.policy import DocumentStatus
from src.utils.errors import ConfigurationError, PolicyLensError
from src.utils.logging import configure_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

_PREVIEW_CHARS = 160


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, engine: PolicyEngine) -> int:
    if not engine.settings.allow_ingest:
        print("Error: ingestion is disabled (set ALLOW_INGEST=true).", file=sys.stderr)
        return EXIT_USAGE

    exit_code = EXIT_OK
    registered = []
    for raw_path in args.paths:
        path = Path(raw_path)
        if not path.is_file():
            print(f"Error: {path} is not a file", file=sys.stderr)
            exit_code = EXIT_FAILURE
            continue

        data = await asyncio.to_thread(path.read_bytes)
        upload = await engine.register_and_enqueue(
            path.name,
            data,
            region_name=args.region,
            stage=True,
            delete_after=not args.keep_file,
        )
        print(
            f"Queued {path.name} as {upload.document.document_id} "
            f"(region: {upload.region_name})"
        )
        registered.append(upload)

    await engine.wait_for_ingestion()

    print()
    for upload in registered:
        status = await engine.document_status(upload.document.document_id)
        print(f"  {upload.document.file_name:<50} {status.value}")
        if status is not DocumentStatus.COMPLETED:
            exit_code = EXIT_FAILURE
    return exit_code


async def _handle_search(args: argparse.Namespace, engine: PolicyEngine) -> int:
    results = await engine.hybrid_search(args.query, args.region, args.top_k)
    if not results:
        print("No matching chunks.")
        return EXIT_OK

    for rank, result in enumerate(results, start=1):
        print(
            f"[{rank}] {result.similarity:.3f}  {result.region_name} / "
            f"{result.document_title} (page {result.page_number})"
        )
        print(f"    {_preview(result.content)}")
    return EXIT_OK


async def _handle_ask(args: argparse.Namespace, engine: PolicyEngine) -> int:
    response = await engine.rag_answer(args.query, args.region)

    print(response.answer)
    print()
    print(f"Confidence: {response.confidence:.2f}")
    for index, citation in enumerate(response.citations, start=1):
        print(
            f"  [{index}] {citation.region_name} / {citation.document_title} "
            f"(page {citation.page_number})"
        )
    if response.suggested_queries:
        print("Try asking:")
        for suggestion in response.suggested_queries:
            print(f"  - {suggestion}")
    return EXIT_OK


async def _handle_extract_facts(args: argparse.Namespace, engine: PolicyEngine) -> int:
    before = len(await engine.document_facts(args.document_id))
    await engine.extract_facts(args.document_id)
    facts = await engine.document_facts(args.document_id)

    print(f"Extracted {len(facts) - before} facts ({len(facts)} total for document).")
    for fact in facts[before:]:
        print(f"  {fact.category.value:<22} {fact.field:<28} {fact.confidence:.2f}  {fact.value}")
    return EXIT_OK


async def _handle_status(args: argparse.Namespace, engine: PolicyEngine) -> int:
    summary = await engine.store_summary()
    by_status = ", ".join(
        f"{s.value} {summary.documents_by_status.get(s, 0)}" for s in DocumentStatus
    )
    print(f"Documents: {summary.total_documents} ({by_status})")
    print(
        f"Chunks: {summary.total_chunks}  Facts: {summary.total_facts}  "
        f"Regions: {summary.total_regions}"
    )
    print()

    status = DocumentStatus(args.status) if args.status else None
    documents = await engine.list_documents(status)
    if not documents:
        print("No documents.")
        return EXIT_OK

    for document in documents:
        processed = document.processed_at.isoformat() if document.processed_at else "-"
        print(
            f"{document.document_id}  {document.status.value:<10}  "
            f"{processed:<32}  {document.file_name}"
        )
    return EXIT_OK


async def _handle_regions(args: argparse.Namespace, engine: PolicyEngine) -> int:
    coverage = await engine.region_coverage()
    if not coverage:
        print("No regions.")
        return EXIT_OK

    for region in coverage:
        print(
            f"{region.abbreviation:<4} {region.name:<28} "
            f"docs {region.completed_documents:<3} facts {region.fact_count:<4} "
            f"coverage {region.coverage_score:>3}%  {region.coverage_level.value:<6}  "
            f"avg confidence {region.avg_confidence:.2f}"
        )
        if args.missing and region.missing_categories:
            missing = ", ".join(c.value for c in region.missing_categories)
            print(f"     missing: {missing}")
    return EXIT_OK


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "ask": _handle_ask,
    "extract-facts": _handle_extract_facts,
    "status": _handle_status,
    "regions": _handle_regions,
}


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= _PREVIEW_CHARS else flat[: _PREVIEW_CHARS - 3] + "..."


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the policyLens CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Ingest and query telehealth policy documents.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest PDF or text files")
    ingest_parser.add_argument("paths", nargs="+", metavar="PATH", help="Files to ingest")
    ingest_parser.add_argument(
        "--region",
        default=None,
        help="Region name (default: inferred from a CCHP report filename)",
    )
    ingest_parser.add_argument(
        "--keep-file",
        action="store_true",
        dest="keep_file",
        help="Keep the staged copy under UPLOAD_DIR after processing",
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Similarity search over chunks")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument(
        "--region", action="append", default=None, help="Restrict to a region (repeatable)"
    )
    search_parser.add_argument("--top-k", type=int, default=5, dest="top_k")

    # -- ask --
    ask_parser = subparsers.add_parser("ask", help="Answer a question with citations")
    ask_parser.add_argument("query", help="Natural-language question")
    ask_parser.add_argument(
        "--region", action="append", default=None, help="Restrict to a region (repeatable)"
    )

    # -- extract-facts --
    facts_parser = subparsers.add_parser(
        "extract-facts", help="Re-run fact extraction for one document"
    )
    facts_parser.add_argument("document_id", help="Document identifier")

    # -- status --
    status_parser = subparsers.add_parser("status", help="Show store totals and list documents")
    status_parser.add_argument(
        "--status",
        choices=[s.value for s in DocumentStatus],
        default=None,
        help="Only show documents in this status",
    )

    # -- regions --
    regions_parser = subparsers.add_parser(
        "regions", help="Show fact coverage per region"
    )
    regions_parser.add_argument(
        "--missing",
        action="store_true",
        help="Also list the fact categories each region is missing",
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    try:
        engine = build_engine(app_settings)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    await engine.start()
    try:
        return await _HANDLERS[args.command](args, engine)
    except PolicyLensError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        await engine.shutdown()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_USAGE

    try:
        app_settings = Settings()
    except ValidationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    if getattr(args, "top_k", 1) < 1:
        print("Error: --top-k must be at least 1", file=sys.stderr)
        return EXIT_USAGE

    return asyncio.run(_run(args, app_settings))
