"""Document store for player views and tournament documents."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from cheelo.db.models import PlayerView, TournamentDocument
from cheelo.db.session import session_scope
from cheelo.live.models import AggregatedPlayerView


def _to_db_time(value: datetime) -> datetime:
    """Naive UTC, as stored in DateTime columns."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class TournamentRecord:
    """A stored tournament document, detached from its session."""

    tournament_id: str
    data: dict[str, Any]
    edited_fields: tuple[str, ...] = ()
    area_key: Optional[str] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.tournament_id,
            **self.data,
            "editedFields": list(self.edited_fields),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class DocumentStore:
    """
    Key/value document store backed by the database.

    Every call runs in its own session_scope, so writes are committed
    (or rolled back) before the call returns.
    """

    session_factory: Optional[Callable[[], Session]] = None

    def _session(self):
        return session_scope(self.session_factory)

    # -------------------------------------------------------------------------
    # Player views
    # -------------------------------------------------------------------------

    def get_player_view(self, player_id: str) -> Optional[AggregatedPlayerView]:
        with self._session() as session:
            row = session.get(PlayerView, player_id)
            if row is None:
                return None
            view = AggregatedPlayerView.from_dict(row.view_json)
            if view.last_updated is None:
                view = AggregatedPlayerView.from_dict({
                    **row.view_json,
                    "last_updated": _from_db_time(row.last_updated).isoformat(),
                })
            return view

    def set_player_view(self, player_id: str, view: AggregatedPlayerView) -> None:
        """Replace the stored view for player_id."""
        document = view.to_dict()
        last_updated = _to_db_time(view.last_updated or datetime.now(timezone.utc))
        profile = view.profile

        with self._session() as session:
            row = session.get(PlayerView, player_id)
            if row is None:
                row = PlayerView(player_id=player_id)
                session.add(row)
            row.name = profile.name
            row.federation = profile.federation
            row.standard_rating = profile.standard_rating
            row.rapid_rating = profile.rapid_rating
            row.blitz_rating = profile.blitz_rating
            row.view_json = document
            row.last_updated = last_updated

    # -------------------------------------------------------------------------
    # Tournament documents
    # -------------------------------------------------------------------------

    @staticmethod
    def _record(row: TournamentDocument) -> TournamentRecord:
        return TournamentRecord(
            tournament_id=row.tournament_id,
            data=dict(row.data_json or {}),
            edited_fields=tuple(row.edited_fields or ()),
            area_key=row.area_key,
            updated_at=_from_db_time(row.updated_at),
        )

    def get_tournament(self, tournament_id: str) -> Optional[TournamentRecord]:
        with self._session() as session:
            row = session.get(TournamentDocument, tournament_id)
            return self._record(row) if row is not None else None

    def set_tournament(
        self,
        tournament_id: str,
        payload: dict[str, Any],
        *,
        area_key: Optional[str] = None,
        edited_fields: tuple[str, ...] | list[str] = (),
        updated_at: Optional[datetime] = None,
    ) -> None:
        """Replace the stored document for tournament_id."""
        with self._session() as session:
            row = session.get(TournamentDocument, tournament_id)
            if row is None:
                row = TournamentDocument(tournament_id=tournament_id)
                session.add(row)
            row.area_key = area_key
            row.name = payload.get("name")
            row.url = payload.get("url")
            row.end_date = payload.get("end_date")
            row.data_json = dict(payload)
            row.edited_fields = list(edited_fields)
            row.updated_at = _to_db_time(updated_at or datetime.now(timezone.utc))

    def list_tournaments(self, area_key: Optional[str] = None) -> list[TournamentRecord]:
        """Stored tournaments, soonest end date first."""
        with self._session() as session:
            stmt = select(TournamentDocument)
            if area_key is not None:
                stmt = stmt.where(TournamentDocument.area_key == area_key)
            stmt = stmt.order_by(TournamentDocument.end_date, TournamentDocument.tournament_id)
            return [self._record(row) for row in session.scalars(stmt)]

    def delete_tournaments_ended_before(self, cutoff: date) -> int:
        """Delete documents whose end date is before cutoff; returns the count."""
        with self._session() as session:
            stmt = select(TournamentDocument).where(
                TournamentDocument.end_date.is_not(None),
                TournamentDocument.end_date < cutoff.isoformat(),
            )
            rows = list(session.scalars(stmt))
            for row in rows:
                session.delete(row)
            return len(rows)
