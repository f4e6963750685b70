from gombesafe.services.sync.actions import ActionKind, QueuedAction, SyncAction, SyncState
from gombesafe.services.sync.coordinator import ReplayReport, SyncCoordinator
from gombesafe.services.sync.transport import (
    HttpTransport,
    LocalTransport,
    RejectedSyncError,
    TransientSyncError,
)

__all__ = [
    "ActionKind",
    "HttpTransport",
    "LocalTransport",
    "QueuedAction",
    "RejectedSyncError",
    "ReplayReport",
    "SyncAction",
    "SyncCoordinator",
    "SyncState",
    "TransientSyncError",
]
