#!/usr/bin/env python3
"""
Area Tournament Sync Script.

Runs one background sync for an area: searches chess-results for
recently updated tournaments and stores their details.

Usage:
    python scripts/sync_area.py --country ESP --place Bilbao

    # Also delete tournaments that ended outside the retention window
    python scripts/sync_area.py --country ESP --place Bilbao --prune

    # Write the run result as JSON (for schedulers)
    python scripts/sync_area.py --place Madrid --metrics-json artifacts/sync.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cheelo.db.store import DocumentStore
from cheelo.logs import configure_logging
from cheelo.scrape.source import ChessDataSource
from cheelo.tasks.background_sync import BackgroundSyncOrchestrator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync stored tournaments for one area")
    parser.add_argument("--country", default="ESP", help="FIDE federation code (default: ESP)")
    parser.add_argument("--place", required=True, help="City or region to search")
    parser.add_argument("--prune", action="store_true", help="Delete tournaments past the retention window")
    parser.add_argument("--metrics-json", help="Write the run result to this JSON file")
    return parser


async def _run(args: argparse.Namespace) -> int:
    store = DocumentStore()
    async with ChessDataSource() as source:
        orchestrator = BackgroundSyncOrchestrator(source, store)
        result = await orchestrator.sync_area(args.country, args.place)

    print("-" * 60)
    print(f"Area:        {result.area_key}")
    print(f"Status:      {result.status}")
    print(f"Terms:       {', '.join(result.search_terms) or '-'}")
    print(f"Discovered:  {result.discovered}")
    print(f"Updated:     {result.updated}")
    print(f"Skipped:     {result.skipped}")
    print(f"Failed:      {result.failed}")
    print(f"Elapsed:     {result.duration_s:.2f}s")

    if args.prune:
        deleted = orchestrator.prune_expired()
        print(f"Pruned:      {deleted}")

    if args.metrics_json:
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(json.dumps(result.to_dict(), indent=2) + "\n", encoding="utf-8")

    return 0 if result.status != "failed" else 1


def main() -> int:
    configure_logging()
    return asyncio.run(_run(_build_parser().parse_args()))


if __name__ == "__main__":
    raise SystemExit(main())
