import logging

from fastapi import APIRouter, Depends

from gombesafe.api.deps import get_store
from gombesafe.services.store.incident_store import IncidentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "",
    summary="Health check",
    description="Service liveness with record counts and event log status",
)
def health_check(store: IncidentStore = Depends(get_store)):
    """
    Health check endpoint.

    Probes the event log, when one is configured, with a count query.
    """
    if store.event_log is None:
        event_log_status = "disabled"
    else:
        try:
            store.event_log.count()
            event_log_status = "ok"
        except Exception as e:
            logger.warning(f"Event log health check failed: {str(e)}")
            event_log_status = "error"

    return {
        "status": "ok",
        "incidents": store.incident_count(),
        "securityAreas": store.area_count(),
        "eventLog": event_log_status,
    }
