from gombesafe.db.base import Base  # noqa
from gombesafe.models.incident_event import IncidentEvent  # noqa
from gombesafe.models.sync_action import SyncActionRow  # noqa

__all__ = ["Base", "IncidentEvent", "SyncActionRow"]
