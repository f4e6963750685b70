from fastapi import HTTPException, Request, status

from gombesafe.core.config import Settings
from gombesafe.core.errors import (
    IncidentStoreError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gombesafe.services.realtime.websocket_manager import WebSocketManager
from gombesafe.services.store.incident_store import IncidentStore


def get_store(request: Request) -> IncidentStore:
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_websocket_manager(request: Request) -> WebSocketManager:
    return request.app.state.websocket_manager


def http_error(exc: IncidentStoreError) -> HTTPException:
    """Translate a store error into the matching HTTP response."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_dict())
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
