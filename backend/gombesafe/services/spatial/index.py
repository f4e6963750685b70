"""Grid-bucketed spatial index over incident and security-area locations."""

import logging
import math
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from gombesafe.core.errors import FieldError, ValidationError
from gombesafe.services.spatial.geo import (
    haversine_distance,
    longitude_in_range,
    radius_bounds,
)
from gombesafe.services.store.events import (
    AreaProvisioned,
    AreaUpdated,
    IncidentCreated,
    StoreEvent,
)
from gombesafe.services.store.records import IncidentRecord, SecurityArea

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]

# Widens every cell range so points sitting exactly on a bound are not lost
_BOUND_EPSILON_DEG = 1e-9


def _check_point(lat: float, lng: float, lat_field: str = "latitude", lng_field: str = "longitude"):
    errors = []
    if lat is None or math.isnan(lat) or not -90.0 <= lat <= 90.0:
        errors.append(FieldError(lat_field, "must be within [-90, 90]"))
    if lng is None or math.isnan(lng) or not -180.0 <= lng <= 180.0:
        errors.append(FieldError(lng_field, "must be within [-180, 180]"))
    if errors:
        raise ValidationError(errors)


class GridIndex:
    """
    Points bucketed into fixed-size lat/lng cells.

    insert and remove are O(1); range queries touch only the cells that
    overlap the query, or only the occupied cells when those are fewer.
    """

    def __init__(self, cell_size_deg: float = 0.01):
        if cell_size_deg <= 0:
            raise ValueError("cell_size_deg must be positive")
        self.cell_size_deg = cell_size_deg
        self._cells: Dict[Cell, Dict[str, Tuple[float, float]]] = {}
        self._points: Dict[str, Tuple[float, float, Cell]] = {}

    def _cell_of(self, lat: float, lng: float) -> Cell:
        return (
            math.floor(lat / self.cell_size_deg),
            math.floor(lng / self.cell_size_deg),
        )

    def insert(self, item_id: str, lat: float, lng: float):
        _check_point(lat, lng)
        if item_id in self._points:
            self.remove(item_id)
        cell = self._cell_of(lat, lng)
        self._cells.setdefault(cell, {})[item_id] = (lat, lng)
        self._points[item_id] = (lat, lng, cell)

    def remove(self, item_id: str) -> bool:
        entry = self._points.pop(item_id, None)
        if entry is None:
            return False
        _, _, cell = entry
        bucket = self._cells.get(cell)
        if bucket is not None:
            bucket.pop(item_id, None)
            if not bucket:
                del self._cells[cell]
        return True

    def position(self, item_id: str) -> Optional[Tuple[float, float]]:
        entry = self._points.get(item_id)
        return (entry[0], entry[1]) if entry else None

    def clear(self):
        self._cells.clear()
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._points

    def _row_range(self, min_lat: float, max_lat: float) -> Tuple[int, int]:
        return (
            math.floor((min_lat - _BOUND_EPSILON_DEG) / self.cell_size_deg),
            math.floor((max_lat + _BOUND_EPSILON_DEG) / self.cell_size_deg),
        )

    def _column_ranges(
        self, lng_range: Optional[Tuple[float, float]]
    ) -> List[Tuple[int, int]]:
        full = (
            math.floor(-180.0 / self.cell_size_deg),
            math.floor(180.0 / self.cell_size_deg),
        )
        if lng_range is None:
            return [full]
        min_lng, max_lng = lng_range
        lo = math.floor((min_lng - _BOUND_EPSILON_DEG) / self.cell_size_deg)
        hi = math.floor((max_lng + _BOUND_EPSILON_DEG) / self.cell_size_deg)
        if min_lng <= max_lng:
            return [(lo, hi)]
        # Wraps the antimeridian
        return [(lo, full[1]), (full[0], hi)]

    def _candidate_buckets(
        self, rows: Tuple[int, int], columns: List[Tuple[int, int]]
    ) -> Iterator[Dict[str, Tuple[float, float]]]:
        cell_count = (rows[1] - rows[0] + 1) * sum(hi - lo + 1 for lo, hi in columns)
        if cell_count > len(self._cells):
            for (row, col), bucket in self._cells.items():
                if rows[0] <= row <= rows[1] and any(lo <= col <= hi for lo, hi in columns):
                    yield bucket
            return
        for row in range(rows[0], rows[1] + 1):
            for lo, hi in columns:
                for col in range(lo, hi + 1):
                    bucket = self._cells.get((row, col))
                    if bucket:
                        yield bucket

    def query_radius(self, lat: float, lng: float, radius_m: float) -> Set[str]:
        """Ids whose haversine distance from (lat, lng) is <= radius_m."""
        _check_point(lat, lng)
        if radius_m is None or math.isnan(radius_m) or radius_m < 0:
            raise ValidationError.single("radius", "must be a non-negative number of meters")
        if not self._points:
            return set()

        min_lat, max_lat, lng_range = radius_bounds(lat, lng, radius_m)
        rows = self._row_range(min_lat, max_lat)
        columns = self._column_ranges(lng_range)

        result = set()
        for bucket in self._candidate_buckets(rows, columns):
            for item_id, (p_lat, p_lng) in bucket.items():
                if haversine_distance(lat, lng, p_lat, p_lng) <= radius_m:
                    result.add(item_id)
        return result

    def query_bounding_box(
        self, min_lat: float, min_lng: float, max_lat: float, max_lng: float
    ) -> Set[str]:
        """
        Ids inside an inclusive box. ``min_lng > max_lng`` denotes a box that
        crosses the antimeridian.
        """
        errors = []
        for name, value, bound in (
            ("minLat", min_lat, 90.0),
            ("maxLat", max_lat, 90.0),
            ("minLng", min_lng, 180.0),
            ("maxLng", max_lng, 180.0),
        ):
            if value is None or math.isnan(value) or not -bound <= value <= bound:
                errors.append(FieldError(name, f"must be within [-{bound:g}, {bound:g}]"))
        if not errors and min_lat > max_lat:
            errors.append(FieldError("minLat", "must not be greater than maxLat"))
        if errors:
            raise ValidationError(errors)
        if not self._points:
            return set()

        rows = self._row_range(min_lat, max_lat)
        columns = self._column_ranges((min_lng, max_lng))

        result = set()
        for bucket in self._candidate_buckets(rows, columns):
            for item_id, (p_lat, p_lng) in bucket.items():
                if min_lat <= p_lat <= max_lat and longitude_in_range(p_lng, min_lng, max_lng):
                    result.add(item_id)
        return result


class SpatialIndex:
    """
    Incident locations plus security-area centroids.

    Derived entirely from the store's records; ``rebuild`` recreates it from
    scratch. Subscribes to store events to stay current.
    """

    def __init__(self, cell_size_deg: float = 0.01):
        self.cell_size_deg = cell_size_deg
        self._incidents = GridIndex(cell_size_deg)
        self._area_centroids = GridIndex(cell_size_deg)
        self._areas: Dict[str, SecurityArea] = {}
        self._max_area_radius = 0.0

    # Incidents

    def insert(self, incident_id: str, lat: float, lng: float):
        self._incidents.insert(incident_id, lat, lng)

    def remove(self, incident_id: str) -> bool:
        return self._incidents.remove(incident_id)

    def query_radius(self, lat: float, lng: float, radius_m: float) -> Set[str]:
        return self._incidents.query_radius(lat, lng, radius_m)

    def query_bounding_box(
        self, min_lat: float, min_lng: float, max_lat: float, max_lng: float
    ) -> Set[str]:
        return self._incidents.query_bounding_box(min_lat, min_lng, max_lat, max_lng)

    def __len__(self) -> int:
        return len(self._incidents)

    # Security areas

    def upsert_area(self, area: SecurityArea):
        if area.radius_meters <= 0:
            raise ValidationError.single("radiusMeters", "must be greater than 0")
        self._area_centroids.insert(area.id, area.latitude, area.longitude)
        self._areas[area.id] = area
        self._max_area_radius = max(a.radius_meters for a in self._areas.values())

    def nearest_area(self, lat: float, lng: float) -> Optional[SecurityArea]:
        """
        The area containing the point whose centroid is closest to it.

        Ties go to the smaller radius, then to the smaller id.
        """
        _check_point(lat, lng)
        if not self._areas:
            return None
        best_key = None
        best = None
        for area_id in self._area_centroids.query_radius(lat, lng, self._max_area_radius):
            area = self._areas[area_id]
            distance = haversine_distance(lat, lng, area.latitude, area.longitude)
            if distance > area.radius_meters:
                continue
            key = (distance, area.radius_meters, area.id)
            if best_key is None or key < best_key:
                best_key = key
                best = area
        return best

    def area_ids(self) -> List[str]:
        return list(self._areas.keys())

    # Event handling and rebuild

    def handle_event(self, event: StoreEvent):
        if isinstance(event, IncidentCreated):
            record = event.record
            self.insert(record.id, record.latitude, record.longitude)
        elif isinstance(event, (AreaProvisioned, AreaUpdated)):
            self.upsert_area(event.area)

    def rebuild(self, records: Iterable[IncidentRecord], areas: Iterable[SecurityArea]):
        self._incidents.clear()
        self._area_centroids.clear()
        self._areas.clear()
        self._max_area_radius = 0.0
        for area in areas:
            self.upsert_area(area)
        for record in records:
            self.insert(record.id, record.latitude, record.longitude)
        logger.info(
            f"Spatial index rebuilt: {len(self._incidents)} incidents, {len(self._areas)} areas"
        )
