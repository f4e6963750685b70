"""Windowed incident statistics over hourly buckets."""

import bisect
import logging
import math
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from gombesafe.core.errors import RebuildCancelled, ValidationError
from gombesafe.schemas.enums import IncidentStatus
from gombesafe.services.spatial.index import SpatialIndex
from gombesafe.services.store.events import (
    AreaProvisioned,
    AreaUpdated,
    IncidentCreated,
    StatusChanged,
    StoreEvent,
)
from gombesafe.services.store.records import IncidentRecord, SecurityArea

logger = logging.getLogger(__name__)

BUCKET_SECONDS = 3600
UNASSIGNED_AREA = "unassigned"

# (type, severity, area key, status)
CounterKey = Tuple[str, str, str, str]


def hour_bucket(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return math.floor(ts.timestamp() / BUCKET_SECONDS)


def percentage_of(count: int, total: int) -> float:
    """Share of ``total`` as a percentage. An empty total yields 0.0."""
    if total == 0:
        return 0.0
    return round(count * 100.0 / total, 2)


@dataclass
class WindowStats:
    hours: int
    total: int = 0
    active: int = 0
    resolved: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    by_severity: Dict[str, int] = field(default_factory=dict)
    by_area: Dict[str, int] = field(default_factory=dict)

    @property
    def type_share(self) -> Dict[str, float]:
        return {k: percentage_of(v, self.total) for k, v in self.by_type.items()}

    def add(self, key: CounterKey, count: int):
        if count <= 0:
            return
        incident_type, severity, area_key, status = key
        self.total += count
        if status == IncidentStatus.ACTIVE.value:
            self.active += count
        else:
            self.resolved += count
        self.by_type[incident_type] = self.by_type.get(incident_type, 0) + count
        self.by_severity[severity] = self.by_severity.get(severity, 0) + count
        self.by_area[area_key] = self.by_area.get(area_key, 0) + count

    def to_dict(self) -> Dict:
        return {
            "hours": self.hours,
            "total": self.total,
            "active": self.active,
            "resolved": self.resolved,
            "by_type": dict(self.by_type),
            "by_severity": dict(self.by_severity),
            "by_area": dict(self.by_area),
            "type_share": self.type_share,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "WindowStats":
        return cls(
            hours=data["hours"],
            total=data["total"],
            active=data["active"],
            resolved=data["resolved"],
            by_type=dict(data["by_type"]),
            by_severity=dict(data["by_severity"]),
            by_area=dict(data["by_area"]),
        )


class _Buckets:
    """The mutable state of the engine, swappable as a whole on rebuild."""

    def __init__(self):
        self.counters: Dict[int, Counter] = {}
        self.members: Dict[int, List[str]] = {}
        self.order: List[int] = []
        self.assignment: Dict[str, str] = {}
        self.area_totals: Counter = Counter()
        self.status_totals: Counter = Counter()

    def bucket(self, number: int) -> Counter:
        counter = self.counters.get(number)
        if counter is None:
            counter = Counter()
            self.counters[number] = counter
            self.members[number] = []
            bisect.insort(self.order, number)
        return counter


class AggregationEngine:
    """
    Incrementally maintained counters per (type, severity, area, hour, status).

    Window queries sum the whole hourly buckets inside the window and scan
    only the records of the single bucket cut by the window start, so the
    result is exact without touching every record.
    """

    def __init__(
        self,
        spatial_index: SpatialIndex,
        lookup: Callable[[str], Optional[IncidentRecord]],
        clock: Callable[[], datetime],
        max_hours_back: int = 24 * 365,
    ):
        self.spatial_index = spatial_index
        self.lookup = lookup
        self.clock = clock
        self.max_hours_back = max_hours_back
        self._state = _Buckets()

    # Event handling

    def handle_event(self, event: StoreEvent):
        if isinstance(event, IncidentCreated):
            self._add_record(self._state, event.record)
        elif isinstance(event, StatusChanged):
            self._move_status(event.record, event.previous_status)
        elif isinstance(event, AreaProvisioned):
            self._reassign_near(event.area)
        elif isinstance(event, AreaUpdated):
            if event.area.geometry_differs(event.previous):
                self._reassign_near(event.previous, event.area)

    def _area_key_for(self, record: IncidentRecord) -> str:
        area = self.spatial_index.nearest_area(record.latitude, record.longitude)
        return area.id if area else UNASSIGNED_AREA

    @staticmethod
    def _key(record: IncidentRecord, area_key: str, status: IncidentStatus) -> CounterKey:
        return (record.type.value, record.severity.value, area_key, status.value)

    def _add_record(self, state: _Buckets, record: IncidentRecord):
        number = hour_bucket(record.reported_at)
        area_key = self._area_key_for(record)
        state.bucket(number)[self._key(record, area_key, record.status)] += 1
        state.members[number].append(record.id)
        state.assignment[record.id] = area_key
        state.area_totals[area_key] += 1
        state.status_totals[record.status.value] += 1

    def _move_status(self, record: IncidentRecord, previous: IncidentStatus):
        state = self._state
        area_key = state.assignment.get(record.id)
        if area_key is None:
            return
        counter = state.bucket(hour_bucket(record.reported_at))
        counter[self._key(record, area_key, previous)] -= 1
        counter[self._key(record, area_key, record.status)] += 1
        state.status_totals[previous.value] -= 1
        state.status_totals[record.status.value] += 1

    def _reassign_near(self, *areas: SecurityArea):
        """Recompute area assignment for incidents an area change could affect."""
        state = self._state
        affected = set()
        for area in areas:
            affected |= self.spatial_index.query_radius(
                area.latitude, area.longitude, area.radius_meters
            )
        moved = 0
        for incident_id in affected:
            record = self.lookup(incident_id)
            old_key = state.assignment.get(incident_id)
            if record is None or old_key is None:
                continue
            new_key = self._area_key_for(record)
            if new_key == old_key:
                continue
            counter = state.bucket(hour_bucket(record.reported_at))
            counter[self._key(record, old_key, record.status)] -= 1
            counter[self._key(record, new_key, record.status)] += 1
            state.area_totals[old_key] -= 1
            state.area_totals[new_key] += 1
            state.assignment[incident_id] = new_key
            moved += 1
        if moved:
            logger.info(f"Reassigned {moved} incidents after area change")

    # Queries

    def _validate_hours(self, hours_back) -> int:
        if isinstance(hours_back, bool) or not isinstance(hours_back, int):
            raise ValidationError.single("hours", "must be a positive integer")
        if hours_back <= 0:
            raise ValidationError.single("hours", "must be a positive integer")
        if hours_back > self.max_hours_back:
            raise ValidationError.single(
                "hours", f"must be at most {self.max_hours_back}"
            )
        return hours_back

    def _window(self, hours_back: int, now: Optional[datetime]) -> Tuple[datetime, int]:
        now = now or self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now - timedelta(hours=hours_back)
        return cutoff, hour_bucket(cutoff)

    def stats_for_window(self, hours_back: int, now: Optional[datetime] = None) -> WindowStats:
        """
        Counts for incidents reported after ``now - hours_back``.

        Raises:
            ValidationError: if hours_back is not a positive integer
        """
        hours_back = self._validate_hours(hours_back)
        cutoff, cutoff_bucket = self._window(hours_back, now)
        state = self._state
        stats = WindowStats(hours=hours_back)

        start = bisect.bisect_left(state.order, cutoff_bucket)
        for number in state.order[start:]:
            if number == cutoff_bucket:
                # Partially covered bucket: count record by record
                for incident_id in state.members[number]:
                    record = self.lookup(incident_id)
                    if record is None or record.reported_at <= cutoff:
                        continue
                    stats.add(
                        self._key(record, state.assignment[incident_id], record.status), 1
                    )
                continue
            for key, count in state.counters[number].items():
                stats.add(key, count)
        return stats

    def recent_incidents(
        self, hours_back: int, now: Optional[datetime] = None
    ) -> List[IncidentRecord]:
        """Incidents in the same window as stats_for_window, newest first, ties by id."""
        hours_back = self._validate_hours(hours_back)
        cutoff, cutoff_bucket = self._window(hours_back, now)
        state = self._state

        records = []
        start = bisect.bisect_left(state.order, cutoff_bucket)
        for number in state.order[start:]:
            for incident_id in state.members[number]:
                record = self.lookup(incident_id)
                if record is None or record.reported_at <= cutoff:
                    continue
                records.append(record)
        return sort_newest_first(records)

    def aged_out_count(self, hours_back: int, now: Optional[datetime] = None) -> int:
        """
        Number of records reported at or before the window start.

        Records are never removed, so for a fixed record set two windows of
        the same length hold the same incidents exactly when this count is
        equal.
        """
        hours_back = self._validate_hours(hours_back)
        cutoff, cutoff_bucket = self._window(hours_back, now)
        state = self._state

        end = bisect.bisect_left(state.order, cutoff_bucket)
        count = sum(len(state.members[number]) for number in state.order[:end])
        for incident_id in state.members.get(cutoff_bucket, []):
            record = self.lookup(incident_id)
            if record is not None and record.reported_at <= cutoff:
                count += 1
        return count

    def area_incident_count(self, area_id: str) -> int:
        return self._state.area_totals.get(area_id, 0)

    def area_of(self, incident_id: str) -> Optional[str]:
        return self._state.assignment.get(incident_id)

    def status_totals(self) -> Dict[str, int]:
        return {status.value: self._state.status_totals.get(status.value, 0) for status in IncidentStatus}

    # Rebuild

    def rebuild(
        self,
        records: Iterable[IncidentRecord],
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Recompute every counter from the records.

        The new state is built aside and swapped in only when complete, so a
        cancelled rebuild leaves the previous counters untouched.
        """
        state = _Buckets()
        for n, record in enumerate(records):
            if cancel_event is not None and n % 256 == 0 and cancel_event.is_set():
                raise RebuildCancelled("Aggregation rebuild cancelled")
            self._add_record(state, record)
        self._state = state
        logger.info(f"Aggregation engine rebuilt from {len(state.assignment)} incidents")


def sort_newest_first(records: Iterable[IncidentRecord]) -> List[IncidentRecord]:
    # Stable two-pass sort: id ascending, then reported_at descending
    ordered = sorted(records, key=lambda r: r.id)
    ordered.sort(key=lambda r: r.reported_at, reverse=True)
    return ordered
