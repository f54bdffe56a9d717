#!/usr/bin/env python3
"""
Live Rating Script.

Prints a player's live ratings: the stored view when it is still fresh,
otherwise a new aggregation from FIDE and chess-results.

Usage:
    # Serve from the store when fresh
    python scripts/live_rating.py 2253383

    # Always re-aggregate
    python scripts/live_rating.py 2253383 --force

    # Dump the full view as JSON
    python scripts/live_rating.py 2253383 --json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cheelo.db.store import DocumentStore
from cheelo.exceptions import PlayerNotFound
from cheelo.live.aggregation import AggregationService
from cheelo.live.models import AggregatedPlayerView
from cheelo.live.sync import SyncCoordinator
from cheelo.logs import configure_logging
from cheelo.scrape.source import ChessDataSource
from cheelo.tasks.coalescer import RequestCoalescer


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Show a player's live FIDE ratings")
    parser.add_argument("player_id", help="FIDE id")
    parser.add_argument("--force", action="store_true", help="Re-aggregate even if a fresh view is stored")
    parser.add_argument("--json", action="store_true", help="Print the full view as JSON")
    return parser


def _print_view(view: AggregatedPlayerView) -> None:
    profile = view.profile
    print(f"{profile.name}  ({view.player_id}, {profile.federation or '-'})  source={view.source}")
    if view.is_stale:
        print("(stale view, refresh running)")
    print("-" * 60)
    for label, base, live, delta in (
        ("Standard", profile.standard_rating, view.live_standard, view.delta_standard),
        ("Rapid", profile.rapid_rating, view.live_rapid, view.delta_rapid),
        ("Blitz", profile.blitz_rating, view.live_blitz, view.delta_blitz),
    ):
        print(f"{label:<10} official={base:<5} live={live:<8} delta={delta:+.2f}")

    for title, tournaments in (
        ("Active", view.active_tournaments),
        ("Pending", view.pending_tournaments),
        ("Next", view.next_tournaments),
    ):
        if not tournaments:
            continue
        print(f"\n{title}:")
        for t in tournaments:
            print(f"  [{t.rating_type}] {t.name}  games={len(t.games)}  total={t.total_delta:+.2f}")


async def _run(args: argparse.Namespace) -> int:
    async with ChessDataSource() as source:
        service = AggregationService(source, RequestCoalescer())
        coordinator = SyncCoordinator(service, DocumentStore())
        try:
            view = await coordinator.get_or_refresh(args.player_id, force_refresh=args.force)
        except PlayerNotFound:
            print(f"ERROR: player {args.player_id} not found on FIDE")
            return 1

        if args.json:
            print(json.dumps(view.to_dict(), indent=2, ensure_ascii=False))
        else:
            _print_view(view)

        # A stale view started a refresh; let it finish before the browser closes
        await coordinator.wait_idle()
    return 0


def main() -> int:
    configure_logging()
    return asyncio.run(_run(_build_parser().parse_args()))


if __name__ == "__main__":
    raise SystemExit(main())
