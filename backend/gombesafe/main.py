import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from gombesafe.core.config import Settings, get_settings
from gombesafe.api import api_router
from gombesafe.db.session import make_session_factory
from gombesafe.services.aggregation.stats_cache import StatsCache
from gombesafe.services.event_log import EventLog
from gombesafe.services.realtime.websocket_manager import WebSocketManager
from gombesafe.services.seed import seed_demo_data
from gombesafe.services.store.incident_store import IncidentStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

DESCRIPTION = """
## Gombe Safe Incident API

Community incident reporting for Gombe LGA.

### Features

* **Ingest**: validated, deduplicated incident reports keyed by client idempotency keys
* **Spatial queries**: incidents near a point or inside a map viewport, nearest security area
* **Statistics**: hourly-bucketed counts by type, severity and area for any recent window
* **Realtime**: WebSocket broadcasts of new incidents and status changes

### API Endpoints

* `/api/health` - Service health
* `/api/incidents` - Incident reporting and queries
* `/api/security-areas` - Security area management
* `/api/stats` - Windowed statistics and dashboard summary
* `/api/realtime` - Live incident updates (WebSocket)
"""


def build_store(settings: Settings) -> IncidentStore:
    """
    Construct the store for this process.

    With an event log configured, a non-empty log is replayed into the store;
    otherwise demo data is seeded through the normal write path.
    """
    event_log = None
    if settings.event_log_url:
        event_log = EventLog(make_session_factory(settings.event_log_url))

    stats_cache = StatsCache(settings) if settings.stats_cache_enabled else None

    store = IncidentStore(settings, event_log=event_log, stats_cache=stats_cache)

    if event_log is not None and event_log.count() > 0:
        store.load_events(event_log.load())
    elif settings.seed_demo_data:
        seed_demo_data(store)

    logger.info(
        f"Incident store ready: {store.incident_count()} incidents, "
        f"{store.area_count()} security areas"
    )
    return store


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[IncidentStore] = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Gombe Safe Incident API",
        description=DESCRIPTION,
        version="1.0.0",
        openapi_tags=[
            {
                "name": "Health",
                "description": "Service health and status",
            },
            {
                "name": "Incidents",
                "description": "Incident reporting, status changes and spatial queries",
            },
            {
                "name": "Security Areas",
                "description": "Security area provisioning, risk levels and nearest-area lookup",
            },
            {
                "name": "Stats",
                "description": "Windowed statistics, dashboard summary and index rebuild",
            },
            {
                "name": "Realtime",
                "description": "Live incident updates over WebSocket",
            },
        ],
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.store = store if store is not None else build_store(settings)
    app.state.websocket_manager = WebSocketManager()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get(
        "/",
        summary="API root",
        description="Basic information about the API",
        tags=["Health"]
    )
    def root():
        return {
            "name": "Gombe Safe Incident API",
            "version": "1.0.0",
            "status": "running",
            "docs": {
                "swagger": "/docs",
                "redoc": "/redoc",
                "openapi": "/openapi.json"
            }
        }

    def custom_openapi():
        """Custom OpenAPI schema generator with better organization"""
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
            tags=app.openapi_tags,
        )

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi
    return app


app = create_app()
