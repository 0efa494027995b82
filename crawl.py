#!/usr/bin/env python3
"""
Church site crawler: discover the structure of church websites.

Crawls one organization (by code or ad-hoc URL) or every active
organization, and stores navigation, boards, popups, dictionary and
extended information in the database.

Usage:
    uv run python crawl.py --code sarang
    uv run python crawl.py --code sarang --deep --max-depth 2 --max-pages 50
    uv run python crawl.py --url https://www.example-church.org --no-save
    uv run python crawl.py --all --start 10 --deep
    uv run python crawl.py --init-db
"""

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

load_dotenv(Path(__file__).parent / ".env")

from church_crawler.collectors.fetcher import PageFetcher
from church_crawler.collectors.site_crawler import ChurchSiteCrawler
from church_crawler.config import CrawlOptions
from church_crawler.constants import DEFAULT_DELAY_MS, DEFAULT_MAX_DEPTH, DEFAULT_MAX_PAGES
from church_crawler.db import CrawlRepository, DatabaseClient
from church_crawler.llm.structure_analyzer import StructureAnalyzer
from church_crawler.models import CrawlProgress, CrawlResult
from church_crawler.utils.logger import CrawlerLogger

console = Console()


def build_options(args) -> CrawlOptions:
    """CrawlOptions from parsed arguments."""

    def on_progress(progress: CrawlProgress):
        if args.verbose:
            console.print(
                f"  [dim][{progress.crawled_pages}/{progress.total_pages}] depth {progress.current_depth}: "
                f"{progress.current_url}[/dim]"
            )

    return CrawlOptions(
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        delay_ms=args.delay_ms,
        extract_people=args.extract_people,
        deep_crawl=args.deep,
        on_progress=on_progress,
    )


def print_result(label: str, result: CrawlResult):
    """One-line outcome of a crawl plus its errors."""
    if not result.success:
        console.print(f"[red]✗ {label}[/red]: {'; '.join(result.errors)}")
        return

    structure = result.structure
    info = result.extended_info
    console.print(
        f"[green]✓ {label}[/green]: {len(structure.navigation)} menus, {len(structure.boards)} boards, "
        f"{len(result.popups)} popups, {len(result.dictionary)} terms "
        f"({result.crawl_time / 1000:.1f}s)"
    )
    if info:
        console.print(
            f"  contacts {info.contacts_count} · social {info.social_media_count} · "
            f"media {info.media_count} · worship {info.worship_times_count}"
        )
    for error in result.errors[:5]:
        console.print(f"  [yellow]! {error}[/yellow]")


def print_batch_summary(rows: list[tuple[str, CrawlResult]]):
    table = Table(title="Crawl summary")
    table.add_column("Code")
    table.add_column("Status")
    table.add_column("Menus", justify="right")
    table.add_column("Boards", justify="right")
    table.add_column("Terms", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Time", justify="right")

    for code, result in rows:
        structure = result.structure
        table.add_row(
            code,
            "[green]ok[/green]" if result.success else "[red]failed[/red]",
            str(len(structure.navigation)) if structure else "-",
            str(len(structure.boards)) if structure else "-",
            str(len(result.dictionary)),
            str(len(result.errors)),
            f"{result.crawl_time / 1000:.1f}s",
        )
    console.print(table)


async def run(args, options: CrawlOptions, logger: CrawlerLogger) -> list[tuple[str, CrawlResult]]:
    repository = None if args.no_save else CrawlRepository(DatabaseClient())
    analyzer = StructureAnalyzer(logger=logger)
    results: list[tuple[str, CrawlResult]] = []

    async with PageFetcher() as fetcher:
        crawler = ChurchSiteCrawler(fetcher, analyzer=analyzer, repository=repository, logger=logger)

        if args.url:
            result = await crawler.crawl_url(args.url, name=args.url, options=options)
            print_result(args.url, result)
            if args.json:
                print(json.dumps(result.model_dump(by_alias=True), ensure_ascii=False, indent=2))
            return [(args.url, result)]

        if args.code:
            codes = [args.code]
        else:
            codes = [organization.code for organization in repository.list_organizations()][args.start :]
            console.print(f"Crawling {len(codes)} organizations")

        for index, code in enumerate(codes, 1):
            if len(codes) > 1:
                console.print(f"\n[bold][{index}/{len(codes)}] {code}[/bold]")
            result = await crawler.crawl(code, options)
            print_result(code, result)
            results.append((code, result))
            logger.clear_tracking()

    return results


def main():
    parser = argparse.ArgumentParser(description="Discover and store the structure of church websites")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--code", type=str, help="Organization code to crawl")
    target.add_argument("--url", type=str, help="Homepage URL to crawl without an organization record")
    target.add_argument("--all", action="store_true", help="Crawl every active organization")
    target.add_argument("--init-db", action="store_true", help="Create missing database tables and exit")
    parser.add_argument("--start", type=int, default=0, help="Skip the first N organizations with --all")
    parser.add_argument("--deep", action="store_true", help="Visit subpages (breadth-first deep crawl)")
    parser.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help=f"Deep crawl depth (default: {DEFAULT_MAX_DEPTH})")
    parser.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES, help=f"Deep crawl page budget (default: {DEFAULT_MAX_PAGES})")
    parser.add_argument("--delay-ms", type=int, default=DEFAULT_DELAY_MS, help=f"Pause between requests (default: {DEFAULT_DELAY_MS})")
    parser.add_argument("--extract-people", action="store_true", help="Fetch pastor pages for people extraction")
    parser.add_argument("--no-save", action="store_true", help="Do not write results to the database")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON (--url only)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging and per-page progress")

    args = parser.parse_args()

    if args.init_db:
        count = DatabaseClient().apply_schema()
        console.print(f"Applied {count} schema statements")
        sys.exit(0)

    if args.url is None and args.no_save:
        print("Error: --no-save only applies to --url crawls")
        sys.exit(1)

    try:
        options = build_options(args)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    logger = CrawlerLogger("church_crawler", log_level="DEBUG" if args.verbose else "INFO", log_file="crawl.log")

    start = time.monotonic()
    results = asyncio.run(run(args, options, logger))
    succeeded = sum(1 for _, result in results if result.success)
    failed = len(results) - succeeded

    if len(results) > 1:
        print_batch_summary(results)
        logger.log_batch_complete(succeeded, failed, time.monotonic() - start)

    if failed:
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
