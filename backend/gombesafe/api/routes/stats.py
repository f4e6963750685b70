import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from gombesafe.api.deps import get_app_settings, get_store, http_error
from gombesafe.core.config import Settings
from gombesafe.core.errors import IncidentStoreError
from gombesafe.schemas.stats import RebuildRead, SummaryRead, WindowStatsRead
from gombesafe.services.store.incident_store import IncidentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("", response_model=WindowStatsRead)
def window_stats(
    hours: Optional[int] = Query(None, description="Window length in hours (positive)"),
    store: IncidentStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """Counts by type, severity and area for incidents in the last ``hours``."""
    if hours is None:
        hours = settings.default_stats_hours
    try:
        return WindowStatsRead.from_stats(store.stats_for_window(hours))
    except IncidentStoreError as e:
        raise http_error(e)


@router.get("/summary", response_model=SummaryRead)
def dashboard_summary(store: IncidentStore = Depends(get_store)):
    return SummaryRead.from_summary(store.summary())


@router.post("/rebuild", response_model=RebuildRead)
def rebuild_derived(store: IncidentStore = Depends(get_store)):
    """Recreate the spatial index and aggregation counters from the records."""
    try:
        store.rebuild_derived()
    except IncidentStoreError as e:
        logger.error(f"Rebuild failed: {str(e)}", exc_info=True)
        raise http_error(e)
    return RebuildRead(
        incidents=store.incident_count(),
        security_areas=store.area_count(),
        generation=store.generation,
    )
