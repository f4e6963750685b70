from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from gombesafe.api.deps import get_store, http_error
from gombesafe.core.errors import IncidentStoreError
from gombesafe.schemas.security_area import SecurityAreaRead
from gombesafe.services.store.incident_store import IncidentStore

router = APIRouter(prefix="/security-areas", tags=["Security Areas"])


@router.get("", response_model=List[SecurityAreaRead])
def list_security_areas(store: IncidentStore = Depends(get_store)):
    """All security areas by name, with their current incident counts."""
    return [SecurityAreaRead.from_area(a) for a in store.list_areas()]


@router.post("", response_model=SecurityAreaRead, status_code=status.HTTP_201_CREATED)
def create_security_area(
    payload: Dict[str, Any] = Body(...),
    store: IncidentStore = Depends(get_store),
):
    try:
        return SecurityAreaRead.from_area(store.provision_area(payload))
    except IncidentStoreError as e:
        raise http_error(e)


@router.get("/nearest", response_model=SecurityAreaRead)
def nearest_security_area(
    lat: float = Query(..., description="Latitude"),
    lng: float = Query(..., description="Longitude"),
    store: IncidentStore = Depends(get_store),
):
    """The closest area whose radius covers the point."""
    try:
        area = store.nearest_area(lat, lng)
    except IncidentStoreError as e:
        raise http_error(e)
    if area is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No security area covers ({lat}, {lng})",
        )
    return SecurityAreaRead.from_area(area)


@router.get("/{area_id}", response_model=SecurityAreaRead)
def get_security_area(area_id: str, store: IncidentStore = Depends(get_store)):
    try:
        return SecurityAreaRead.from_area(store.get_area(area_id))
    except IncidentStoreError as e:
        raise http_error(e)


@router.patch("/{area_id}", response_model=SecurityAreaRead)
def update_security_area(
    area_id: str,
    payload: Dict[str, Any] = Body(...),
    store: IncidentStore = Depends(get_store),
):
    """Partial update; every accepted change refreshes lastUpdated."""
    try:
        return SecurityAreaRead.from_area(store.update_area(area_id, payload))
    except IncidentStoreError as e:
        raise http_error(e)
