"""
Cheelo read API.

Endpoints:
- GET /api/player/{player_id}?refresh=false  live view of a player
- GET /api/search?q=...                      player search
- GET /api/tournaments?area=Country:Place    stored tournament documents

The long-lived services (data source, coalescer, aggregation service,
sync coordinator, area sync orchestrator, store) are built once in the
application lifespan and kept on app.state.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from cheelo.db.store import DocumentStore
from cheelo.exceptions import PlayerNotFound
from cheelo.live.aggregation import AggregationService
from cheelo.live.sync import SyncCoordinator
from cheelo.logs import configure_logging
from cheelo.scrape.base import ExternalDataSource
from cheelo.tasks.background_sync import BackgroundSyncOrchestrator, area_key, parse_area_key
from cheelo.tasks.coalescer import RequestCoalescer

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}
TEMPO_LABELS = {"1": "Standard", "2": "Rapid", "3": "Blitz"}


@dataclass
class Services:
    source: ExternalDataSource
    store: DocumentStore
    coalescer: RequestCoalescer
    aggregation: AggregationService
    coordinator: SyncCoordinator
    orchestrator: BackgroundSyncOrchestrator

    @classmethod
    def build(cls, source: ExternalDataSource, store: Optional[DocumentStore] = None) -> "Services":
        store = store or DocumentStore()
        coalescer = RequestCoalescer()
        aggregation = AggregationService(source, coalescer)
        return cls(
            source=source,
            store=store,
            coalescer=coalescer,
            aggregation=aggregation,
            coordinator=SyncCoordinator(aggregation, store),
            orchestrator=BackgroundSyncOrchestrator(source, store),
        )

    async def shutdown(self) -> None:
        await self.coordinator.shutdown()
        await self.orchestrator.shutdown()


@asynccontextmanager
async def default_services() -> AsyncIterator[Services]:
    """Services backed by the live FIDE / chess-results scrapers."""
    from cheelo.scrape.source import ChessDataSource

    async with ChessDataSource() as source:
        yield Services.build(source)


def create_app(services_factory: Callable = default_services) -> FastAPI:
    """
    Build the API application.

    Args:
        services_factory: Async context manager factory yielding Services
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        async with services_factory() as services:
            app.state.services = services
            logger.info("Cheelo API started")
            try:
                yield
            finally:
                await services.shutdown()
                logger.info("Cheelo API stopped")

    app = FastAPI(title="Cheelo Live Ratings", lifespan=lifespan)

    @app.get("/api/player/{player_id}")
    async def api_player(request: Request, player_id: str, refresh: bool = False):
        """Live view of a player; is_stale=true means a refresh is running."""
        services: Services = request.app.state.services
        try:
            view = await services.coordinator.get_or_refresh(player_id, force_refresh=refresh)
        except PlayerNotFound:
            return JSONResponse({"error": "Player not found"}, status_code=404, headers=NO_STORE)
        except Exception:
            logger.exception("Failed to fetch player %s", player_id)
            return JSONResponse({"error": "Failed to fetch player data"}, status_code=500, headers=NO_STORE)
        return JSONResponse(view.to_dict(), headers=NO_STORE)

    @app.get("/api/search")
    async def api_search(request: Request, q: str = Query("", description="Player name or FIDE id")):
        query = q.strip()
        if not query:
            return JSONResponse([])
        services: Services = request.app.state.services
        players = await services.source.search_players(query)
        return JSONResponse([asdict(player) for player in players])

    @app.get("/api/tournaments")
    async def api_tournaments(
        request: Request,
        area: str = Query("", description="Country:Place, e.g. ESP:Bilbao"),
        tempo: str = Query("", description="1=Standard, 2=Rapid, 3=Blitz"),
    ):
        """
        Stored tournaments, latest end date first.

        Giving an area filters by it and starts a background sync of that
        area; the response does not wait for the sync.
        """
        services: Services = request.app.state.services
        key = None
        if area.strip():
            country, place = parse_area_key(area)
            key = area_key(country, place)
            services.orchestrator.trigger(country, place)

        records = services.store.list_tournaments(key)
        documents = [record.to_dict() for record in records]
        label = TEMPO_LABELS.get(tempo)
        if label:
            documents = [doc for doc in documents if doc.get("tempo") == label]
        documents.sort(key=lambda doc: doc.get("end_date") or "0000-00-00", reverse=True)
        return JSONResponse(documents)

    return app


app = create_app()
