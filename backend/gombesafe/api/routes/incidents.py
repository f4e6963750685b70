import logging
from typing import Any, Dict, List, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Body,
    Depends,
    Header,
    HTTPException,
    Query,
    Response,
    status,
)

from gombesafe.api.deps import get_app_settings, get_store, get_websocket_manager, http_error
from gombesafe.core.config import Settings
from gombesafe.core.errors import IncidentStoreError
from gombesafe.schemas.incident import IncidentRead
from gombesafe.services.realtime.websocket_manager import WebSocketManager
from gombesafe.services.store.incident_store import IncidentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/incidents", tags=["Incidents"])


def _serialize(record) -> Dict[str, Any]:
    return IncidentRead.from_record(record).model_dump(mode="json", by_alias=True)


@router.get("", response_model=List[IncidentRead])
def list_incidents(
    area: Optional[str] = Query(None, description="Security area id or location substring"),
    incident_type: Optional[str] = Query(None, alias="type", description="Filter by incident type"),
    hours: Optional[int] = Query(None, description="Only incidents reported in the last N hours"),
    store: IncidentStore = Depends(get_store),
):
    """List incidents newest first. Filters combine."""
    try:
        records = store.list_incidents(area=area, incident_type=incident_type, hours=hours)
    except IncidentStoreError as e:
        raise http_error(e)
    return [IncidentRead.from_record(r) for r in records]


@router.get("/nearby", response_model=List[IncidentRead])
def incidents_nearby(
    lat: float = Query(..., description="Latitude"),
    lng: float = Query(..., description="Longitude"),
    radius: float = Query(1000.0, description="Search radius in meters"),
    store: IncidentStore = Depends(get_store),
):
    try:
        records = store.incidents_near(lat, lng, radius)
    except IncidentStoreError as e:
        raise http_error(e)
    return [IncidentRead.from_record(r) for r in records]


@router.get("/within", response_model=List[IncidentRead])
def incidents_within(
    min_lat: float = Query(..., alias="minLat"),
    min_lng: float = Query(..., alias="minLng"),
    max_lat: float = Query(..., alias="maxLat"),
    max_lng: float = Query(..., alias="maxLng"),
    store: IncidentStore = Depends(get_store),
):
    """Viewport query. ``minLng > maxLng`` selects a box crossing the antimeridian."""
    try:
        records = store.incidents_within(min_lat, min_lng, max_lat, max_lng)
    except IncidentStoreError as e:
        raise http_error(e)
    return [IncidentRead.from_record(r) for r in records]


@router.get("/{incident_id}", response_model=IncidentRead)
def get_incident(incident_id: str, store: IncidentStore = Depends(get_store)):
    try:
        return IncidentRead.from_record(store.get_incident(incident_id))
    except IncidentStoreError as e:
        raise http_error(e)


@router.post("", response_model=IncidentRead, status_code=status.HTTP_201_CREATED)
def create_incident(
    response: Response,
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(..., description="Incident report fields plus idempotencyKey"),
    idempotency_header: Optional[str] = Header(None, alias="Idempotency-Key"),
    store: IncidentStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
    websocket_manager: WebSocketManager = Depends(get_websocket_manager),
):
    """
    Submit an incident report.

    Returns 201 with the new record, or 200 with the original record when the
    idempotency key was already ingested.
    """
    key = payload.get("idempotencyKey", payload.get("idempotency_key"))
    if key is None:
        key = idempotency_header

    try:
        result = store.submit(payload, key)
    except IncidentStoreError as e:
        raise http_error(e)

    if not result.created:
        response.status_code = status.HTTP_200_OK
    elif settings.realtime_enabled:
        background_tasks.add_task(websocket_manager.broadcast_incident, _serialize(result.record))
    return IncidentRead.from_record(result.record)


@router.patch("/{incident_id}/status", response_model=IncidentRead)
def update_incident_status(
    incident_id: str,
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(..., examples=[{"status": "resolved"}]),
    store: IncidentStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
    websocket_manager: WebSocketManager = Depends(get_websocket_manager),
):
    """Move an incident between active and resolved. Repeating the current status is a no-op."""
    if "status" not in payload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Invalid status update",
                "errors": [{"field": "status", "message": "is required"}],
            },
        )

    try:
        result = store.update_status(incident_id, payload["status"])
    except IncidentStoreError as e:
        raise http_error(e)

    if result.changed and settings.realtime_enabled:
        background_tasks.add_task(websocket_manager.broadcast_status, _serialize(result.record))
    return IncidentRead.from_record(result.record)
