"""
Advertiser Stats Scraper - CLI Entry Point

Looks up active ad counts for advertiser pages under adaptive throttling,
and reports on the blocking monitor.
"""

import asyncio
import argparse
import json
import logging
import sys
from pathlib import Path

import aiofiles
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from adstats.config import config
from adstats.extraction.extractor import extract_active_count, extract_display_name
from adstats.extraction.scripts import ScriptInspector
from adstats.fetchers.http_fetcher import HTTPFetcher
from adstats.monitor.blocking_monitor import BlockingMonitor
from adstats.monitor.stores import FallbackEventStore, JsonlEventStore
from adstats.orchestrator import Orchestrator, StatsResult


console = Console()


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with rich handler."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def load_ids_from_file(filepath: str) -> list[str]:
    """Load page IDs from a text file (one per line)."""
    path = Path(filepath)
    if not path.exists():
        console.print(f"[red]File not found: {filepath}[/red]")
        sys.exit(1)

    ids = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                ids.append(line)

    return ids


def build_orchestrator(timeout: float | None = None) -> Orchestrator:
    """Wire the orchestrator to the durable event log and the HTTP fetcher."""
    config.ensure_directories()
    store = FallbackEventStore(JsonlEventStore(config.monitor.events_path))
    return Orchestrator(
        fetch_page=HTTPFetcher().fetch_page,
        monitor=BlockingMonitor(store=store),
        fetch_timeout=timeout,
    )


def print_results(results: dict[str, StatsResult]) -> None:
    table = Table(title="Advertiser Stats")
    table.add_column("Page ID")
    table.add_column("Advertiser")
    table.add_column("Active ads", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Error", style="red")

    for page_id, result in results.items():
        if result.success and result.stats:
            table.add_row(
                page_id,
                result.stats.display_name,
                str(result.stats.active_count),
                f"{result.execution_time_ms:.0f}",
                "",
            )
        else:
            table.add_row(page_id, "-", "-", f"{result.execution_time_ms:.0f}", result.error or "")

    console.print(table)


def print_mapping(title: str, data: dict) -> None:
    table = Table(title=title)
    table.add_column("Key")
    table.add_column("Value", justify="right")
    for key, value in data.items():
        table.add_row(str(key), str(value))
    console.print(table)


async def run_stats(args: argparse.Namespace) -> None:
    """Look up stats for the requested pages, retrying failures after the recommended delay."""
    page_ids = []
    if args.page_id:
        page_ids.extend(args.page_id)
    if args.file:
        page_ids.extend(load_ids_from_file(args.file))

    if not page_ids:
        console.print("[red]No page IDs provided. Use --page-id or --file[/red]")
        sys.exit(1)

    orchestrator = build_orchestrator(args.timeout)

    console.print("\n[bold blue]Advertiser Stats Scraper[/bold blue]")
    console.print(f"Pages to process: {len(page_ids)}")
    console.print(f"Country: {args.country}")
    console.print()

    results: dict[str, StatsResult] = {}
    pending = list(dict.fromkeys(page_ids))

    for attempt in range(args.retries + 1):
        if attempt:
            delay = await orchestrator.get_recommended_delay()
            console.print(f"[yellow]Retrying {len(pending)} pages in {delay:.1f}s[/yellow]")
            await asyncio.sleep(delay)

        batch = await asyncio.gather(
            *(orchestrator.get_advertiser_stats(page_id, args.country) for page_id in pending)
        )
        results.update(zip(pending, batch))
        pending = [page_id for page_id, result in zip(pending, batch) if not result.success]
        if not pending:
            break

    await orchestrator.aclose()

    print_results(results)
    print_mapping("Performance", orchestrator.get_performance_stats())

    if args.output:
        async with aiofiles.open(args.output, "w", encoding="utf-8") as f:
            await f.write(json.dumps({k: v.to_dict() for k, v in results.items()}, indent=2))
        console.print(f"\n[green]Results exported to: {args.output}[/green]")


async def run_blocking(args: argparse.Namespace) -> None:
    """Show blocking statistics and the current recommendations."""
    orchestrator = build_orchestrator()
    stats = await orchestrator.get_blocking_stats(args.window)

    print_mapping("Blocking Stats", stats.to_dict())
    print_mapping(
        "Recommendations",
        {
            "delay_seconds": round(await orchestrator.get_recommended_delay(), 1),
            "batch_size": await orchestrator.get_recommended_batch_size(),
            "concurrency": await orchestrator.get_recommended_concurrency(),
            "healthy": await orchestrator.is_healthy(),
        },
    )


async def run_cleanup(args: argparse.Namespace) -> None:
    """Purge blocking events past retention."""
    orchestrator = build_orchestrator()
    removed = await orchestrator.cleanup_old_events(args.days)
    console.print(f"[green]Removed {removed} events older than {args.days} days[/green]")


async def run_inspect(args: argparse.Namespace) -> None:
    """Run the extraction cascade against a saved page."""
    path = Path(args.html_file)
    if not path.exists():
        console.print(f"[red]File not found: {args.html_file}[/red]")
        sys.exit(1)

    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        html = await f.read()

    print_mapping(
        "Extraction",
        {
            "active_count": extract_active_count(html),
            "display_name": extract_display_name(html),
        },
    )
    print_mapping("Scripts by type", ScriptInspector().summarize(html))


COMMANDS = {
    "stats": run_stats,
    "blocking": run_blocking,
    "cleanup": run_cleanup,
    "inspect": run_inspect,
}


async def main_async(args: argparse.Namespace) -> None:
    """Async main function."""
    setup_logging(args.log_level)
    await COMMANDS[args.command](args)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Advertiser Stats Scraper - adaptive Ad Library count lookups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s stats --page-id 123456 --country US
  %(prog)s stats --file pages.txt --retries 2 --output results.json
  %(prog)s blocking
  %(prog)s inspect saved_page.html
        """,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=config.log_level,
        help=f"Logging level (default: {config.log_level})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    stats_parser = subparsers.add_parser("stats", help="Look up active ad counts")
    stats_parser.add_argument("--page-id", "-p", action="append", help="Page ID (repeatable)")
    stats_parser.add_argument("--file", "-f", help="File containing page IDs (one per line)")
    stats_parser.add_argument("--country", "-c", default="ALL", help="Country code (default: ALL)")
    stats_parser.add_argument(
        "--retries", "-r",
        type=int,
        default=0,
        help="Retry rounds for failed pages, spaced by the recommended delay (default: 0)",
    )
    stats_parser.add_argument("--timeout", type=float, help="Per-fetch timeout in seconds")
    stats_parser.add_argument("--output", "-o", help="Write results as JSON to this file")

    blocking_parser = subparsers.add_parser("blocking", help="Show blocking stats and recommendations")
    blocking_parser.add_argument("--window", type=float, help="Analysis window in hours")

    cleanup_parser = subparsers.add_parser("cleanup", help="Purge old blocking events")
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=config.monitor.retention_days,
        help=f"Days of events to keep (default: {config.monitor.retention_days})",
    )

    inspect_parser = subparsers.add_parser("inspect", help="Run extraction against a saved HTML file")
    inspect_parser.add_argument("html_file", help="Path to saved page markup")

    args = parser.parse_args()

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")


if __name__ == "__main__":
    main()
