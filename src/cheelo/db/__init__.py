"""
Database module for Cheelo.

Provides the ORM models, session management and the document store.

Usage:
    from cheelo.db import DocumentStore

    store = DocumentStore()
    view = store.get_player_view("2253383")
"""

from cheelo.db.models import Base, PlayerView, TournamentDocument
from cheelo.db.session import SessionLocal, get_engine, make_session_factory, session_scope
from cheelo.db.store import DocumentStore, TournamentRecord

__all__ = [
    # Base
    "Base",
    # Models
    "PlayerView",
    "TournamentDocument",
    # Session
    "SessionLocal",
    "get_engine",
    "make_session_factory",
    "session_scope",
    # Store
    "DocumentStore",
    "TournamentRecord",
]
