"""Shared runtime dataclasses for background sync runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

SyncStatus = Literal["success", "failed", "skipped"]


@dataclass
class SyncRunResult:
    """Normalized result of one area sync run."""

    area_key: str
    status: SyncStatus
    started_at: datetime
    ended_at: datetime
    discovered: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    search_terms: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def duration_s(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "area_key": self.area_key,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_s": self.duration_s,
            "discovered": self.discovered,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "search_terms": self.search_terms,
            "error": self.error,
        }
