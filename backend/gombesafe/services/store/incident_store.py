"""The incident store: one write path over records, areas and derived indexes."""

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from gombesafe.core.config import Settings, get_settings
from gombesafe.core.errors import NotFoundError, RebuildCancelled, ValidationError
from gombesafe.schemas.enums import IncidentStatus, IncidentType, RiskLevel
from gombesafe.services.aggregation.engine import (
    AggregationEngine,
    WindowStats,
    percentage_of,
    sort_newest_first,
)
from gombesafe.services.aggregation.stats_cache import StatsCache
from gombesafe.services.event_log import EventLog
from gombesafe.services.ingest.pipeline import (
    IngestPipeline,
    IngestResult,
    StatusChangeResult,
    utc_now,
)
from gombesafe.services.ingest.validation import normalize_enum_token
from gombesafe.services.spatial.index import SpatialIndex
from gombesafe.services.store.areas import apply_area_updates, build_area
from gombesafe.services.store.events import (
    AreaProvisioned,
    AreaUpdated,
    EventBus,
    IncidentCreated,
    StatusChanged,
    StoreEvent,
)
from gombesafe.services.store.locking import ReadWriteLock
from gombesafe.services.store.records import IncidentRecord, SecurityArea

logger = logging.getLogger(__name__)

RECENT_HOURS = 24
WEEKLY_HOURS = 168


class IncidentStore:
    """
    Owns incident records and security areas.

    Every mutation runs under the write lock and publishes its event while
    still holding it, so the event log, spatial index and aggregation
    counters are all updated before any reader can look. Reads share the
    read lock and never block each other.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        event_log: Optional[EventLog] = None,
        stats_cache: Optional[StatsCache] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock or utc_now
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.event_log = event_log
        self.stats_cache = stats_cache
        self.lock = ReadWriteLock()
        self.bus = EventBus()

        self.pipeline = IngestPipeline(self.bus, clock=self.clock, id_factory=self.id_factory)
        self.spatial_index, self.aggregation = self._new_indexes()
        self._areas: Dict[str, SecurityArea] = {}
        self._generation = 0

        if self.event_log is not None:
            self.bus.subscribe(self.event_log.append)
        self.bus.subscribe(self._apply_to_indexes)

    def _new_indexes(self):
        spatial_index = SpatialIndex(self.settings.spatial_cell_size_deg)
        aggregation = AggregationEngine(
            spatial_index,
            lookup=self.pipeline.get,
            clock=self.clock,
            max_hours_back=self.settings.max_hours_back,
        )
        return spatial_index, aggregation

    def _apply_to_indexes(self, event: StoreEvent):
        # Spatial first: the aggregation engine asks it for area assignment
        self.spatial_index.handle_event(event)
        self.aggregation.handle_event(event)
        self._generation += 1

    @property
    def generation(self) -> int:
        return self._generation

    # Incident writes

    def submit(self, raw: Any, idempotency_key: Any) -> IngestResult:
        with self.lock.write():
            return self.pipeline.submit(raw, idempotency_key)

    def update_status(self, incident_id: str, new_status: Any) -> StatusChangeResult:
        with self.lock.write():
            return self.pipeline.update_status(incident_id, new_status)

    # Incident reads

    def get_incident(self, incident_id: str) -> IncidentRecord:
        with self.lock.read():
            record = self.pipeline.get(incident_id)
        if record is None:
            raise NotFoundError("Incident", incident_id)
        return record

    def incident_count(self) -> int:
        with self.lock.read():
            return len(self.pipeline)

    def list_incidents(
        self,
        area: Optional[str] = None,
        incident_type: Optional[str] = None,
        hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[IncidentRecord]:
        """
        Incidents newest first, optionally filtered. Filters combine with AND.

        ``area`` matches a security-area id exactly; any other value is a
        case-insensitive substring match on the location label.
        """
        type_filter = None
        if incident_type is not None:
            try:
                type_filter = IncidentType(normalize_enum_token(incident_type))
            except ValueError:
                allowed = ", ".join(member.value for member in IncidentType)
                raise ValidationError.single("type", f"must be one of: {allowed}")

        with self.lock.read():
            if hours is not None:
                records = self.aggregation.recent_incidents(hours, now=now)
            else:
                records = sort_newest_first(self.pipeline.iter_records())

            if type_filter is not None:
                records = [r for r in records if r.type == type_filter]

            if area:
                if area in self._areas:
                    records = [r for r in records if self.aggregation.area_of(r.id) == area]
                else:
                    needle = area.strip().lower()
                    records = [r for r in records if needle in r.location.lower()]
        return records

    def incidents_near(self, lat: float, lng: float, radius_m: float) -> List[IncidentRecord]:
        with self.lock.read():
            ids = self.spatial_index.query_radius(lat, lng, radius_m)
            return sort_newest_first(self.pipeline.get(i) for i in ids)

    def incidents_within(
        self, min_lat: float, min_lng: float, max_lat: float, max_lng: float
    ) -> List[IncidentRecord]:
        with self.lock.read():
            ids = self.spatial_index.query_bounding_box(min_lat, min_lng, max_lat, max_lng)
            return sort_newest_first(self.pipeline.get(i) for i in ids)

    # Security areas

    def provision_area(self, raw: Any) -> SecurityArea:
        with self.lock.write():
            area = build_area(raw, self.id_factory(), self._now())
            self.bus.publish(AreaProvisioned(area=area))
            self._areas[area.id] = area
            logger.info(f"Security area {area.id} ({area.name}) provisioned")
            return self._with_count(area)

    def update_area(self, area_id: str, updates: Any) -> SecurityArea:
        with self.lock.write():
            current = self._areas.get(area_id)
            if current is None:
                raise NotFoundError("SecurityArea", area_id)
            updated = apply_area_updates(current, updates, self._now())
            self.bus.publish(AreaUpdated(area=updated, previous=current))
            self._areas[area_id] = updated
            if updated.risk_level != current.risk_level:
                logger.info(
                    f"Security area {area_id} risk level "
                    f"{current.risk_level.value} -> {updated.risk_level.value}"
                )
            return self._with_count(updated)

    def get_area(self, area_id: str) -> SecurityArea:
        with self.lock.read():
            area = self._areas.get(area_id)
            if area is None:
                raise NotFoundError("SecurityArea", area_id)
            return self._with_count(area)

    def list_areas(self) -> List[SecurityArea]:
        with self.lock.read():
            areas = [self._with_count(a) for a in self._areas.values()]
        return sorted(areas, key=lambda a: (a.name.lower(), a.id))

    def area_count(self) -> int:
        with self.lock.read():
            return len(self._areas)

    def nearest_area(self, lat: float, lng: float) -> Optional[SecurityArea]:
        with self.lock.read():
            area = self.spatial_index.nearest_area(lat, lng)
            return self._with_count(area) if area else None

    def _with_count(self, area: SecurityArea) -> SecurityArea:
        return replace(area, incident_count=self.aggregation.area_incident_count(area.id))

    # Statistics

    def stats_for_window(self, hours_back: int, now: Optional[datetime] = None) -> WindowStats:
        if self.stats_cache is None or now is not None:
            with self.lock.read():
                return self.aggregation.stats_for_window(hours_back, now=now)

        now = self._now()
        with self.lock.read():
            generation = self._generation
            aged_out = self.aggregation.aged_out_count(hours_back, now=now)
        cached = self.stats_cache.get(hours_back, generation, aged_out)
        if cached is not None:
            return cached

        with self.lock.read():
            stats = self.aggregation.stats_for_window(hours_back, now=now)
            unchanged = self._generation == generation

        # A write in between means the key no longer describes this result
        if unchanged:
            self.stats_cache.set(stats, generation, aged_out)
        return stats

    def recent_incidents(self, hours_back: int, now: Optional[datetime] = None) -> List[IncidentRecord]:
        with self.lock.read():
            return self.aggregation.recent_incidents(hours_back, now=now)

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Dashboard counters for the whole store."""
        now = now or self._now()
        with self.lock.read():
            totals = self.aggregation.status_totals()
            total = len(self.pipeline)
            recent = self.aggregation.stats_for_window(RECENT_HOURS, now=now).total
            weekly = self.aggregation.stats_for_window(WEEKLY_HOURS, now=now).total
            areas = list(self._areas.values())

        active = totals[IncidentStatus.ACTIVE.value]
        return {
            "total_incidents": total,
            "active_incidents": active,
            "resolved_incidents": totals[IncidentStatus.RESOLVED.value],
            "recent_incidents": recent,
            "weekly_incidents": weekly,
            "safe_zones": sum(1 for a in areas if a.risk_level in (RiskLevel.SAFE, RiskLevel.LOW)),
            "high_risk_areas": sum(
                1 for a in areas if a.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
            ),
            "active_share": percentage_of(active, total),
        }

    # Rebuild and recovery

    def rebuild_derived(self, cancel_event: Optional[threading.Event] = None):
        """
        Recreate the spatial index and aggregation counters from the records.

        The replacements are built aside and swapped in at the end; a
        cancelled rebuild leaves the current indexes in place.

        Raises:
            RebuildCancelled: if cancel_event is set before the rebuild completes
        """
        with self.lock.write():
            spatial_index, aggregation = self._new_indexes()
            if cancel_event is not None and cancel_event.is_set():
                raise RebuildCancelled("Rebuild cancelled before start")
            spatial_index.rebuild(self.pipeline.iter_records(), self._areas.values())
            aggregation.rebuild(self.pipeline.iter_records(), cancel_event=cancel_event)
            self.spatial_index, self.aggregation = spatial_index, aggregation
            self._generation += 1
        if self.stats_cache is not None:
            self.stats_cache.invalidate()
        logger.info(f"Derived indexes rebuilt from {len(self.pipeline)} incidents")

    def load_events(self, events: Iterable[StoreEvent]) -> int:
        """
        Restore records and areas from logged events, then rebuild indexes.

        Events are applied straight to the owned collections, so they are not
        written back to the event log.
        """
        applied = 0
        with self.lock.write():
            for event in events:
                if isinstance(event, IncidentCreated):
                    self.pipeline.restore(event.record)
                elif isinstance(event, StatusChanged):
                    self.pipeline.restore_status(event.record)
                elif isinstance(event, (AreaProvisioned, AreaUpdated)):
                    self._areas[event.area.id] = event.area
                applied += 1
        self.rebuild_derived()
        logger.info(f"Replayed {applied} events from the event log")
        return applied

    def _now(self) -> datetime:
        now = self.clock()
        return now if now.tzinfo else now.replace(tzinfo=timezone.utc)
