import random
from datetime import datetime, timezone

import pytest

from gombesafe.core.errors import ValidationError
from gombesafe.schemas.enums import RiskLevel
from gombesafe.services.spatial.geo import haversine_distance, radius_bounds
from gombesafe.services.spatial.index import GridIndex, SpatialIndex
from gombesafe.services.store.records import SecurityArea

CENTER = (10.29, 11.17)
NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def area(area_id, lat, lng, radius, risk=RiskLevel.LOW):
    return SecurityArea(
        id=area_id,
        name=area_id.title(),
        risk_level=risk,
        latitude=lat,
        longitude=lng,
        radius_meters=radius,
        last_updated=NOW,
    )


@pytest.fixture
def scattered():
    """Points spread over roughly 60 km around Gombe, plus a coincident one."""
    rng = random.Random(42)
    points = {"coincident": CENTER}
    for n in range(300):
        points[f"p{n}"] = (
            CENTER[0] + rng.uniform(-0.3, 0.3),
            CENTER[1] + rng.uniform(-0.3, 0.3),
        )
    index = SpatialIndex()
    for point_id, (lat, lng) in points.items():
        index.insert(point_id, lat, lng)
    return index, points


def test_haversine_known_distance():
    # One degree of latitude on a 6371 km sphere
    assert haversine_distance(0, 0, 1, 0) == pytest.approx(111194.93, rel=1e-6)
    assert haversine_distance(10.29, 11.17, 10.29, 11.17) == 0


@pytest.mark.parametrize("radius", [0, 50, 500, 2500, 10000, 25000, 100000])
def test_query_radius_matches_brute_force(scattered, radius):
    index, points = scattered
    expected = {
        point_id
        for point_id, (lat, lng) in points.items()
        if haversine_distance(CENTER[0], CENTER[1], lat, lng) <= radius
    }

    assert index.query_radius(CENTER[0], CENTER[1], radius) == expected


def test_zero_radius_returns_only_coincident_points(scattered):
    index, _ = scattered
    index.insert("also-here", *CENTER)
    assert index.query_radius(CENTER[0], CENTER[1], 0) == {"coincident", "also-here"}


def test_large_radius_covers_everything(scattered):
    index, points = scattered
    assert index.query_radius(CENTER[0], CENTER[1], 200000) == set(points)


def test_bounding_box_matches_brute_force(scattered):
    index, points = scattered
    box = (10.2, 11.1, 10.35, 11.3)
    expected = {
        point_id
        for point_id, (lat, lng) in points.items()
        if box[0] <= lat <= box[2] and box[1] <= lng <= box[3]
    }

    assert index.query_bounding_box(*box) == expected


def test_empty_index_returns_empty_results():
    index = SpatialIndex()
    assert index.query_radius(0, 0, 1000) == set()
    assert index.query_bounding_box(-10, -10, 10, 10) == set()
    assert index.nearest_area(0, 0) is None


def test_duplicate_locations_allowed():
    index = GridIndex()
    index.insert("a", 10.0, 11.0)
    index.insert("b", 10.0, 11.0)
    assert index.query_radius(10.0, 11.0, 1) == {"a", "b"}


def test_reinsert_moves_point():
    index = GridIndex()
    index.insert("a", 10.0, 11.0)
    index.insert("a", 12.0, 13.0)
    assert len(index) == 1
    assert index.position("a") == (12.0, 13.0)
    assert index.query_radius(10.0, 11.0, 1000) == set()


def test_remove():
    index = GridIndex()
    index.insert("a", 10.0, 11.0)
    assert index.remove("a")
    assert not index.remove("a")
    assert "a" not in index
    assert index.query_radius(10.0, 11.0, 1000) == set()


def test_radius_across_antimeridian():
    index = SpatialIndex()
    index.insert("east", 0.0, 179.999)
    index.insert("west", 0.0, -179.999)
    index.insert("far", 0.0, 170.0)

    assert index.query_radius(0.0, 180.0, 500) == {"east", "west"}


def test_bounding_box_across_antimeridian():
    index = SpatialIndex()
    index.insert("east", 5.0, 179.5)
    index.insert("west", 5.0, -179.5)
    index.insert("middle", 5.0, 0.0)

    assert index.query_bounding_box(0.0, 179.0, 10.0, -179.0) == {"east", "west"}


def test_radius_near_pole():
    index = SpatialIndex()
    index.insert("near-pole", 89.9999, 100.0)
    index.insert("other-side", 89.9999, -80.0)

    assert index.query_radius(90.0, 0.0, 50) == {"near-pole", "other-side"}


def test_radius_bounds_cover_whole_sphere():
    assert radius_bounds(0, 0, 2.1e7) == (-90.0, 90.0, None)


def test_invalid_queries_raise_validation_error():
    index = SpatialIndex()
    with pytest.raises(ValidationError) as exc_info:
        index.query_radius(91, 0, 10)
    assert exc_info.value.fields == ["latitude"]

    with pytest.raises(ValidationError) as exc_info:
        index.query_radius(0, 0, -1)
    assert exc_info.value.fields == ["radius"]

    with pytest.raises(ValidationError) as exc_info:
        index.query_bounding_box(20, 0, 10, 5)
    assert exc_info.value.fields == ["minLat"]


def test_nearest_area_requires_containment():
    index = SpatialIndex()
    index.upsert_area(area("small", 10.0, 11.0, 100))

    assert index.nearest_area(10.0, 11.0).id == "small"
    # ~1.1 km away: outside the 100 m radius
    assert index.nearest_area(10.01, 11.0) is None


def test_nearest_area_prefers_closest_centroid():
    index = SpatialIndex()
    index.upsert_area(area("north", 10.01, 11.0, 5000))
    index.upsert_area(area("south", 9.99, 11.0, 5000))

    assert index.nearest_area(10.008, 11.0).id == "north"
    assert index.nearest_area(9.995, 11.0).id == "south"


def test_nearest_area_ties_break_by_radius_then_id():
    index = SpatialIndex()
    index.upsert_area(area("b-wide", 10.0, 11.0, 2000))
    index.upsert_area(area("c-narrow", 10.0, 11.0, 1000))
    index.upsert_area(area("a-narrow", 10.0, 11.0, 1000))

    assert index.nearest_area(10.001, 11.0).id == "a-narrow"


def test_area_update_moves_centroid():
    index = SpatialIndex()
    index.upsert_area(area("zone", 10.0, 11.0, 500))
    index.upsert_area(area("zone", 12.0, 13.0, 500))

    assert index.nearest_area(10.0, 11.0) is None
    assert index.nearest_area(12.0, 13.0).id == "zone"
    assert index.area_ids() == ["zone"]


def test_non_positive_area_radius_rejected():
    index = SpatialIndex()
    with pytest.raises(ValidationError):
        index.upsert_area(area("zone", 10.0, 11.0, 0))


def test_rebuild_replaces_contents(scattered):
    index, _ = scattered
    index.rebuild([], [area("zone", 10.0, 11.0, 500)])

    assert len(index) == 0
    assert index.area_ids() == ["zone"]
