"""
Live rating data model.

- GameResult: one scored game of the subject player
- TournamentChange: one tournament's contribution to the live rating
- AggregatedPlayerView: everything shown for a player, as persisted

Objects are replaced, never mutated, once returned: a fresh scrape
produces new instances (dataclasses.replace for small adjustments).
The to_dict/from_dict pairs define the stored JSON document and the
API response shape.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from cheelo.elo.constants import RatingType
from cheelo.scrape.base import Profile, RatingHistoryPoint


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


@dataclass(frozen=True)
class GameResult:
    """A game with its rating change for the subject player."""

    round: str
    opponent_name: str
    result: str
    score: Optional[float]
    rating_delta: float
    opponent_rating: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "opponent_name": self.opponent_name,
            "opponent_rating": self.opponent_rating,
            "result": self.result,
            "score": self.score,
            "rating_delta": self.rating_delta,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameResult":
        return cls(
            round=data.get("round", ""),
            opponent_name=data.get("opponent_name", ""),
            opponent_rating=data.get("opponent_rating"),
            result=data.get("result", ""),
            score=data.get("score"),
            rating_delta=float(data.get("rating_delta") or 0.0),
        )


@dataclass(frozen=True)
class TournamentChange:
    """
    One tournament's effect on a player's live rating.

    total_delta is the sum of the (already date-filtered) games' deltas,
    rounded to two decimals at the sum.
    """

    name: str
    url: str
    rating_type: RatingType
    games: tuple[GameResult, ...] = ()
    total_delta: float = 0.0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rounds: Optional[str] = None
    is_pending: bool = False
    k_factor: Optional[int] = None

    def __repr__(self) -> str:
        return (
            f"<TournamentChange(name='{self.name}', type={self.rating_type}, "
            f"games={len(self.games)}, total={self.total_delta:+.2f}, pending={self.is_pending})>"
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "url": self.url,
            "rating_type": self.rating_type,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "rounds": self.rounds,
            "is_pending": self.is_pending,
            "k_factor": self.k_factor,
            "total_delta": self.total_delta,
            "games": [game.to_dict() for game in self.games],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TournamentChange":
        return cls(
            name=data.get("name", ""),
            url=data.get("url", ""),
            rating_type=data.get("rating_type") or "standard",
            start_date=_date(data.get("start_date")),
            end_date=_date(data.get("end_date")),
            rounds=data.get("rounds"),
            is_pending=bool(data.get("is_pending")),
            k_factor=data.get("k_factor"),
            total_delta=float(data.get("total_delta") or 0.0),
            games=tuple(GameResult.from_dict(g) for g in data.get("games") or []),
        )


@dataclass(frozen=True)
class AggregatedPlayerView:
    """
    Live view of one player, stored as a single document per player id.

    live_* is base + delta for rated lists and 0 where the player has no
    official rating in that list.
    """

    player_id: str
    profile: Profile
    history: tuple[RatingHistoryPoint, ...] = ()
    active_tournaments: tuple[TournamentChange, ...] = ()
    pending_tournaments: tuple[TournamentChange, ...] = ()
    next_tournaments: tuple[TournamentChange, ...] = ()
    live_standard: float = 0.0
    live_rapid: float = 0.0
    live_blitz: float = 0.0
    delta_standard: float = 0.0
    delta_rapid: float = 0.0
    delta_blitz: float = 0.0
    is_stale: bool = False
    last_updated: Optional[datetime] = None
    source: Optional[str] = None  # 'cache' or 'scrape', set when served

    def __repr__(self) -> str:
        return (
            f"<AggregatedPlayerView(player_id='{self.player_id}', "
            f"live_standard={self.live_standard}, stale={self.is_stale})>"
        )

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "profile": self.profile.to_dict(),
            "history": [point.to_dict() for point in self.history],
            "active_tournaments": [t.to_dict() for t in self.active_tournaments],
            "pending_tournaments": [t.to_dict() for t in self.pending_tournaments],
            "next_tournaments": [t.to_dict() for t in self.next_tournaments],
            "live_standard": self.live_standard,
            "live_rapid": self.live_rapid,
            "live_blitz": self.live_blitz,
            "delta_standard": self.delta_standard,
            "delta_rapid": self.delta_rapid,
            "delta_blitz": self.delta_blitz,
            "is_stale": self.is_stale,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AggregatedPlayerView":
        last_updated = data.get("last_updated")
        return cls(
            player_id=data["player_id"],
            profile=Profile.from_dict(data.get("profile") or {}),
            history=tuple(RatingHistoryPoint.from_dict(p) for p in data.get("history") or []),
            active_tournaments=tuple(TournamentChange.from_dict(t) for t in data.get("active_tournaments") or []),
            pending_tournaments=tuple(TournamentChange.from_dict(t) for t in data.get("pending_tournaments") or []),
            next_tournaments=tuple(TournamentChange.from_dict(t) for t in data.get("next_tournaments") or []),
            live_standard=float(data.get("live_standard") or 0.0),
            live_rapid=float(data.get("live_rapid") or 0.0),
            live_blitz=float(data.get("live_blitz") or 0.0),
            delta_standard=float(data.get("delta_standard") or 0.0),
            delta_rapid=float(data.get("delta_rapid") or 0.0),
            delta_blitz=float(data.get("delta_blitz") or 0.0),
            is_stale=bool(data.get("is_stale")),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
            source=data.get("source"),
        )

    @property
    def tournaments(self) -> tuple[TournamentChange, ...]:
        return self.active_tournaments + self.pending_tournaments + self.next_tournaments
