"""
SQLAlchemy ORM models for Cheelo.

Cheelo persists documents rather than a relational model: the live view
of a player and the descriptive data of a tournament are each stored as
one JSON document per key, with a few columns pulled out for listing
and pruning.

Tables:
- player_views: latest AggregatedPlayerView per FIDE id
- tournament_documents: tournament details collected by the area sync
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class PlayerView(Base):
    """
    Stored live view of one player.

    view_json holds the whole AggregatedPlayerView document and is
    always replaced as a whole. The rating columns repeat the official
    profile ratings so views can be listed without decoding documents.
    """

    __tablename__ = "player_views"

    player_id: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    federation: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    standard_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rapid_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blitz_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_json: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<PlayerView(player_id='{self.player_id}', name='{self.name}')>"


class TournamentDocument(Base):
    """
    Tournament details for one chess-results tournament (tnr id).

    edited_fields lists the keys of data_json that were curated by hand;
    the area sync re-applies their stored values after every refresh.
    """

    __tablename__ = "tournament_documents"

    tournament_id: Mapped[str] = mapped_column(String(20), primary_key=True)
    area_key: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    end_date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # ISO date
    data_json: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    edited_fields: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_tournament_documents_area", "area_key"),
        Index("idx_tournament_documents_end_date", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<TournamentDocument(tournament_id='{self.tournament_id}', name='{self.name}')>"
