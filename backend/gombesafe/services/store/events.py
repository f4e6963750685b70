"""Domain events published by the incident store's write path."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Union

from gombesafe.schemas.enums import IncidentStatus
from gombesafe.services.store.records import IncidentRecord, SecurityArea

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncidentCreated:
    record: IncidentRecord

    event_type = "IncidentCreated"


@dataclass(frozen=True)
class StatusChanged:
    record: IncidentRecord
    previous_status: IncidentStatus

    event_type = "StatusChanged"


@dataclass(frozen=True)
class AreaProvisioned:
    area: SecurityArea

    event_type = "AreaProvisioned"


@dataclass(frozen=True)
class AreaUpdated:
    area: SecurityArea
    previous: SecurityArea

    event_type = "AreaUpdated"


StoreEvent = Union[IncidentCreated, StatusChanged, AreaProvisioned, AreaUpdated]
Subscriber = Callable[[StoreEvent], None]


class EventBus:
    """
    Synchronous fan-out of store events.

    Subscribers run in registration order on the publishing thread, which
    holds the store's write lock for the whole publish call.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber):
        self._subscribers.append(subscriber)

    def publish(self, event: StoreEvent):
        for subscriber in list(self._subscribers):
            subscriber(event)
        logger.debug(f"Published {event.event_type} to {len(self._subscribers)} subscribers")
