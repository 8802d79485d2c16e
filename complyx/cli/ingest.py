"""Command-line tool for managing the Complyx knowledge base.

Usage::

    python -m complyx.cli file --path ifrs-s2.pdf --title "IFRS S2" \\
        --source "IFRS Foundation" --type standard

    python -m complyx.cli url --url https://www.ifrs.org/news/...

    python -m complyx.cli feed-add --url https://www.ifrs.org/feed.xml \\
        --name "IFRS news" --interval 60

    python -m complyx.cli feed-list
    python -m complyx.cli feed-run            # every enabled feed
    python -m complyx.cli feed-run --id feed-...

    python -m complyx.cli search "scope 3 emissions" --top-k 5

    python -m complyx.cli stats

Providers come from the same environment variables as the web app.  With
``VECTOR_DB_TYPE=memory`` nothing outlives the process, so ingestion from
the CLI is only useful against Pinecone or ChromaDB.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from complyx.bootstrap import build_components, close_components
from complyx.config.settings import Settings
from complyx.models.documents import DocumentMetadata, DocumentType, IngestionOptions, IngestionResult
from complyx.models.feeds import FeedConfig, ScrapingResult
from complyx.models.rag import SearchQuery
from complyx.utils.errors import ComplyxError
from complyx.utils.logging import configure_logging

_DOCUMENT_TYPES = [member.value for member in DocumentType]


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_ingestion(result: IngestionResult) -> None:
    print("\nIngestion complete:" if result.success else "\nIngestion finished with errors:")
    print(f"  Document ID:    {result.document_id}")
    print(f"  Chunks created: {result.chunks_created}")
    print(f"  Vectors stored: {result.vectors_stored}")
    print(f"  Time:           {result.processing_time_ms:.0f} ms")
    if result.message:
        print(f"  {result.message}")
    for error in result.errors:
        print(f"  ! {error}")


def _print_scraping(result: ScrapingResult) -> None:
    status = "ok" if result.success else "FAILED"
    print(f"{result.feed_id} [{status}] {result.feed_name}")
    print(
        f"  processed={result.items_processed} failed={result.items_failed} "
        f"ingested={result.documents_ingested} time={result.processing_time_ms:.0f} ms"
    )
    if result.error:
        print(f"  error: {result.error}")
    for error in result.errors:
        print(f"  ! {error}")


def _metadata_from_args(args: argparse.Namespace) -> DocumentMetadata:
    return DocumentMetadata(
        document_id=args.id or "",
        title=args.title or "",
        source=args.source or "",
        document_type=args.type,
        version=args.version,
        section=args.section,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_file(args: argparse.Namespace, components: dict[str, Any]) -> int:
    print(f"Ingesting file: {args.path}")
    result = await components["ingestion_service"].ingest_file(
        args.path,
        _metadata_from_args(args),
        IngestionOptions(skip_existing=args.skip_existing),
    )
    _print_ingestion(result)
    return 0 if result.success else 1


async def _handle_url(args: argparse.Namespace, components: dict[str, Any]) -> int:
    print(f"Ingesting URL: {args.url}")
    result = await components["ingestion_service"].ingest_url(
        args.url,
        _metadata_from_args(args),
        IngestionOptions(skip_existing=args.skip_existing),
    )
    _print_ingestion(result)
    return 0 if result.success else 1


async def _handle_feed_add(args: argparse.Namespace, components: dict[str, Any]) -> int:
    config = FeedConfig(
        url=args.url,
        name=args.name,
        update_interval=args.interval,
        cron_expression=args.cron,
        document_type=args.type,
        source=args.source or "RSS Feed",
        enabled=not args.disabled,
    )
    feed = await components["feed_scheduler"].register_feed(config)
    print(f"Registered {feed.id}: {config.name} ({feed.cron_expression})")
    return 0


async def _handle_feed_list(components: dict[str, Any]) -> int:
    feeds = await components["feed_scheduler"].get_feeds()
    if not feeds:
        print("No feeds registered.")
        return 0
    for feed in feeds:
        state = "enabled" if feed.enabled else "disabled"
        last = feed.last_processed_date.isoformat() if feed.last_processed_date else "never"
        print(f"{feed.id}  [{state}]  {feed.config.name}")
        print(f"    {feed.config.url}")
        print(f"    cron={feed.cron_expression}  watermark={last}")
    return 0


async def _handle_feed_run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    scheduler = components["feed_scheduler"]
    if args.id:
        results = [await scheduler.process_feed(args.id)]
    else:
        results = await scheduler.process_all_feeds()
    if not results:
        print("No enabled feeds.")
    for result in results:
        _print_scraping(result)
    return 0 if all(result.success for result in results) else 1


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    search_service = components["search_service"]
    if args.hybrid:
        response = await search_service.hybrid_search(args.query, top_k=args.top_k)
    else:
        response = await search_service.search(
            SearchQuery(query=args.query, top_k=args.top_k, min_score=args.min_score)
        )
    print(f"{response.total_results} results ({response.processing_time_ms:.0f} ms)")
    for position, result in enumerate(response.results, start=1):
        title = result.metadata.title or result.metadata.document_id
        print(f"\n{position}. [{result.score:.3f}] {title}")
        if result.metadata.section:
            print(f"   Section: {result.metadata.section}")
        snippet = " ".join(result.text.split())[:200]
        print(f"   {snippet}")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    stats = await components["ingestion_service"].get_stats()
    print("Knowledge Base Statistics")
    print("=" * 40)
    print(f"  Total vectors:      {stats.total_vectors}")
    print(f"  Vector store:       {stats.vector_store}")
    print(f"  Embedding provider: {stats.embedding_provider}")
    print(f"  Dimension:          {stats.embedding_dimension}")
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    components = build_components(app_settings)
    try:
        await components["vector_store"].connect()
        if args.command == "file":
            return await _handle_file(args, components)
        if args.command == "url":
            return await _handle_url(args, components)
        if args.command == "feed-add":
            return await _handle_feed_add(args, components)
        if args.command == "feed-list":
            return await _handle_feed_list(components)
        if args.command == "feed-run":
            return await _handle_feed_run(args, components)
        if args.command == "search":
            return await _handle_search(args, components)
        return await _handle_stats(components)
    except ComplyxError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await close_components(components)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_metadata_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--id", help="Document ID (default: derived from the path or URL)")
    parser.add_argument("--title", help="Document title (default: extracted)")
    parser.add_argument("--source", help="Publisher, e.g. 'IFRS Foundation'")
    parser.add_argument("--type", default="other", choices=_DOCUMENT_TYPES, help="Document type")
    parser.add_argument("--version", help="Document version")
    parser.add_argument("--section", help="Section label applied to every chunk")
    parser.add_argument(
        "--skip-existing",
        action="store_true",
        dest="skip_existing",
        help="Leave the document alone if it is already stored",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge-base CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m complyx.cli",
        description="Manage the Complyx knowledge base.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest a local file (txt, md, html, pdf)")
    file_parser.add_argument("--path", required=True, help="Path to the file")
    _add_metadata_arguments(file_parser)

    # -- url --
    url_parser = subparsers.add_parser("url", help="Fetch a web page or PDF and ingest it")
    url_parser.add_argument("--url", required=True, help="Page URL")
    _add_metadata_arguments(url_parser)

    # -- feed-add --
    feed_add = subparsers.add_parser("feed-add", help="Register an RSS/Atom feed")
    feed_add.add_argument("--url", required=True, help="Feed URL")
    feed_add.add_argument("--name", required=True, help="Display name")
    feed_add.add_argument("--interval", type=int, help="Minutes between runs")
    feed_add.add_argument("--cron", help="Cron expression (overrides --interval)")
    feed_add.add_argument("--type", default="guidance", choices=_DOCUMENT_TYPES)
    feed_add.add_argument("--source", help="Source label for ingested items")
    feed_add.add_argument("--disabled", action="store_true", help="Register without scheduling")

    # -- feed-list --
    subparsers.add_parser("feed-list", help="List registered feeds")

    # -- feed-run --
    feed_run = subparsers.add_parser("feed-run", help="Process feeds now")
    feed_run.add_argument("--id", help="Feed ID (default: every enabled feed)")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Search the knowledge base")
    search_parser.add_argument("query", help="Search text")
    search_parser.add_argument("--top-k", type=int, default=10, dest="top_k")
    search_parser.add_argument("--min-score", type=float, default=None, dest="min_score")
    search_parser.add_argument("--hybrid", action="store_true", help="Blend keyword scoring")

    # -- stats --
    subparsers.add_parser("stats", help="Show knowledge base statistics")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, build components from the environment and dispatch."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=app_settings.is_production,
        service="complyx-cli",
    )
    sys.exit(asyncio.run(_run(args, app_settings)))


if __name__ == "__main__":
    main()
