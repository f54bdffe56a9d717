"""
Cheelo v1.0 - Live Chess Ratings

Projects a player's live FIDE rating by combining the official monthly
rating list with game results from tournaments that have not been
officially rated yet.

Main components:
- elo: Elo expected score, rating delta and K-factor policy
- scrape: FIDE and chess-results.com data source adapters
- live: Tournament classification, per-tournament scraping, aggregation
  and the stale-while-revalidate player cache
- tasks: Request coalescing, keyed locks and background area sync
- db: Document store for player views and tournament documents
- web: FastAPI read API
"""

__version__ = "1.0.0"
