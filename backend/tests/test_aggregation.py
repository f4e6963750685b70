import threading

import pytest

from conftest import make_report
from gombesafe.core.errors import RebuildCancelled, ValidationError
from gombesafe.services.aggregation.engine import UNASSIGNED_AREA, percentage_of


def seed_timeline(store, clock, hours_apart):
    """Submit one incident per offset (hours before the final clock time)."""
    records = []
    types = ["theft", "banditry", "kidnapping", "road_accident"]
    for n, offset in enumerate(sorted(hours_apart, reverse=True)):
        records.append((offset, make_report(type=types[n % len(types)], severity="high")))
    start = clock.now
    submitted = []
    for n, (offset, report) in enumerate(records):
        clock.now = start
        clock.advance(hours=-offset)
        submitted.append(store.submit(report, f"key-{n}").record)
    clock.now = start
    return submitted


def test_percentage_of_zero_total_is_zero():
    assert percentage_of(0, 0) == 0.0
    assert percentage_of(5, 0) == 0.0


def test_percentage_of():
    assert percentage_of(1, 3) == 33.33
    assert percentage_of(3, 3) == 100.0


def test_empty_store_stats(store):
    stats = store.stats_for_window(24)
    assert stats.total == 0
    assert stats.by_type == {}
    assert stats.type_share == {}


@pytest.mark.parametrize("hours", [1, 2, 3, 6, 24, 25, 168, 500])
def test_stats_total_matches_recent_incidents(store, clock, hours):
    seed_timeline(store, clock, [0, 0.25, 0.5, 0.99, 1.0, 1.5, 2.75, 5, 23.9, 24.5, 100, 167.99, 300])

    stats = store.stats_for_window(hours)
    recent = store.recent_incidents(hours)

    assert stats.total == len(recent)
    assert sum(stats.by_type.values()) == stats.total
    assert sum(stats.by_severity.values()) == stats.total
    assert sum(stats.by_area.values()) == stats.total
    assert stats.active + stats.resolved == stats.total


def test_window_boundary_is_exclusive(store, clock):
    seed_timeline(store, clock, [1.0, 0.5])

    # reported exactly 1h before now falls outside the 1h window
    assert store.stats_for_window(1).total == 1
    assert store.stats_for_window(2).total == 2


def test_window_counts_by_dimension(store, clock):
    store.submit(make_report(type="theft", severity="low"), "a")
    store.submit(make_report(type="theft", severity="high"), "b")
    store.submit(make_report(type="banditry", severity="high"), "c")
    clock.advance(hours=3)

    stats = store.stats_for_window(4)
    assert stats.by_type == {"theft": 2, "banditry": 1}
    assert stats.by_severity == {"low": 1, "high": 2}
    assert stats.by_area == {UNASSIGNED_AREA: 3}
    assert stats.type_share["theft"] == 66.67

    assert store.stats_for_window(2).total == 0


def test_recent_incidents_ordering(store, clock):
    first = store.submit(make_report(), "k1").record
    second = store.submit(make_report(), "k2").record
    clock.advance(minutes=5)
    third = store.submit(make_report(), "k3").record

    recent = store.recent_incidents(1)
    # Newest first; same timestamp ordered by id ascending
    assert [r.id for r in recent] == [third.id, first.id, second.id]


@pytest.mark.parametrize("hours", [0, -1, 1.5, "24", True])
def test_invalid_hours_rejected(store, hours):
    with pytest.raises(ValidationError) as exc_info:
        store.stats_for_window(hours)
    assert exc_info.value.fields == ["hours"]

    with pytest.raises(ValidationError):
        store.recent_incidents(hours)


def test_hours_above_maximum_rejected(store):
    with pytest.raises(ValidationError):
        store.stats_for_window(store.settings.max_hours_back + 1)


def test_status_changes_move_counts(store, clock):
    record = store.submit(make_report(), "k1").record
    store.submit(make_report(), "k2")

    store.update_status(record.id, "resolved")
    stats = store.stats_for_window(1)
    assert (stats.active, stats.resolved, stats.total) == (1, 1, 2)

    store.update_status(record.id, "active")
    stats = store.stats_for_window(1)
    assert (stats.active, stats.resolved) == (2, 0)


def test_area_counts_follow_area_changes(store):
    store.submit(make_report(latitude=10.27, longitude=11.17), "k1")
    store.submit(make_report(latitude=10.2705, longitude=11.1705), "k2")
    store.submit(make_report(latitude=10.40, longitude=11.40), "k3")

    pantami = store.provision_area(
        {"name": "Pantami", "riskLevel": "low", "latitude": 10.27, "longitude": 11.17, "radiusMeters": 500}
    )
    assert store.get_area(pantami.id).incident_count == 2
    assert store.stats_for_window(1).by_area == {pantami.id: 2, UNASSIGNED_AREA: 1}

    store.update_area(pantami.id, {"radiusMeters": 10})
    assert store.get_area(pantami.id).incident_count == 1

    store.update_area(pantami.id, {"latitude": 10.40, "longitude": 11.40, "radiusMeters": 100})
    assert store.get_area(pantami.id).incident_count == 1
    assert store.stats_for_window(1).by_area == {pantami.id: 1, UNASSIGNED_AREA: 2}


def test_rebuild_reproduces_counters(store, clock):
    seed_timeline(store, clock, [0.1, 0.6, 2, 30])
    store.provision_area(
        {"name": "Pantami", "riskLevel": "low", "latitude": 10.27, "longitude": 11.17}
    )
    before = store.stats_for_window(48).to_dict()
    generation = store.generation

    store.rebuild_derived()

    assert store.stats_for_window(48).to_dict() == before
    assert store.generation > generation
    assert store.incidents_near(10.27, 11.17, 100)


def test_cancelled_rebuild_keeps_current_indexes(store, clock):
    seed_timeline(store, clock, [0.1, 0.2])
    spatial_index, aggregation = store.spatial_index, store.aggregation
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(RebuildCancelled):
        store.rebuild_derived(cancel_event=cancel)

    assert store.spatial_index is spatial_index
    assert store.aggregation is aggregation
    assert store.stats_for_window(1).total == 2


def test_summary(store):
    store.provision_area({"name": "GRA", "riskLevel": "low", "latitude": 10.3, "longitude": 11.2})
    store.provision_area({"name": "Market", "riskLevel": "high", "latitude": 10.29, "longitude": 11.17})
    record = store.submit(make_report(), "k1").record
    store.submit(make_report(), "k2")
    store.update_status(record.id, "resolved")

    summary = store.summary()
    assert summary["total_incidents"] == 2
    assert summary["active_incidents"] == 1
    assert summary["resolved_incidents"] == 1
    assert summary["recent_incidents"] == 2
    assert summary["weekly_incidents"] == 2
    assert summary["safe_zones"] == 1
    assert summary["high_risk_areas"] == 1
    assert summary["active_share"] == 50.0


def test_summary_of_empty_store(store):
    assert store.summary()["active_share"] == 0.0
