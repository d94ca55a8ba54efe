from datetime import date, datetime, time, timedelta

import pytest

from schoolrun.core.exceptions import InsufficientDriversError, InvalidConfigurationError
from schoolrun.optimization import (
    OptimizationConfig, build_tour, cluster_schools, evaluate_route, plan_routes, schedule_tour
)
from schoolrun.optimization import scheduling
from schoolrun.optimization.scheduling import dwell_minutes, travel_minutes

SERVICE_DATE = date(2024, 9, 16)


class Record:
    """Directory row as the pipeline sees it"""

    def __init__(self, id, latitude, longitude, dismissal_time, student_count, name=None):
        self.id = id
        self.name = name
        self.latitude = latitude
        self.longitude = longitude
        self.dismissal_time = dismissal_time
        self.student_count = student_count


# Clustering

def test_two_drivers_three_schools(point, config):
    a = point(1, students=8, dismissal=time(15, 0), lat=40.00)
    b = point(2, students=6, dismissal=time(15, 5), lat=40.05)
    c = point(3, students=4, dismissal=time(15, 10), lat=40.06)

    clusters = cluster_schools([a, b, c], config)

    assert len(clusters) == 2
    assert all(cluster.load <= 12 for cluster in clusters)
    covered = sorted(s.id for cluster in clusters for s in cluster.schools)
    assert covered == [1, 2, 3]
    assert [sorted(s.id for s in cl.schools) for cl in clusters] == [[1], [2, 3]]


def test_capacity_never_exceeded(point):
    config = OptimizationConfig(driver_count=3, vehicle_capacity=10)
    schools = [
        point(i, students=n, lat=40 + i * 0.01)
        for i, n in enumerate([7, 5, 5, 4, 3, 3, 2], start=1)
    ]
    clusters = cluster_schools(schools, config)

    assert all(cluster.load <= 10 for cluster in clusters)
    assert sorted(s.id for cl in clusters for s in cl.schools) == [s.id for s in schools]


def test_school_that_fits_nowhere_opens_overflow_cluster(point):
    config = OptimizationConfig(driver_count=1, vehicle_capacity=12)
    clusters = cluster_schools([point(1, students=8), point(2, students=8, lat=40.1)], config)

    assert len(clusters) == 2
    assert clusters[0].overflow is False
    assert clusters[1].overflow is True


def test_empty_clusters_are_dropped(point):
    config = OptimizationConfig(driver_count=4, vehicle_capacity=12)
    clusters = cluster_schools([point(1, students=3)], config)
    assert len(clusters) == 1


def test_invalid_configuration_rejected(point):
    with pytest.raises(InvalidConfigurationError) as exc:
        cluster_schools([point(1)], OptimizationConfig(driver_count=0, vehicle_capacity=12))
    assert exc.value.field == "driver_count"

    with pytest.raises(InvalidConfigurationError):
        OptimizationConfig(driver_count=1, vehicle_capacity=0).validate()

    with pytest.raises(InvalidConfigurationError):
        OptimizationConfig(driver_count=1, vehicle_capacity=5, min_dwell_minutes=20).validate()


# Tour

def test_tour_visits_every_school_once(point):
    schools = [point(i, lat=40 + (i % 3) * 0.02, lon=-75 + i * 0.01) for i in range(1, 7)]
    tour = build_tour(schools)

    assert len(tour) == len(schools)
    assert sorted(s.id for s in tour) == list(range(1, 7))


def test_tour_starts_at_earliest_dismissal(point):
    b = point(2, dismissal=time(15, 5), lat=40.05)
    c = point(3, dismissal=time(15, 10), lat=40.06)
    assert [s.id for s in build_tour([c, b])] == [2, 3]


def test_tour_follows_nearest_neighbor(point):
    start = point(1, dismissal=time(14, 30), lat=40.0)
    far = point(2, dismissal=time(15, 0), lat=40.2)
    near = point(3, dismissal=time(15, 30), lat=40.01)

    assert [s.id for s in build_tour([far, near, start])] == [1, 3, 2]


def test_tour_ties_break_on_lowest_id(point):
    start = point(5, dismissal=time(14, 0), lat=0.0, lon=0.0)
    # equidistant east and west of the start
    east = point(9, lat=0.0, lon=0.01)
    west = point(4, lat=0.0, lon=-0.01)

    assert [s.id for s in build_tour([east, west, start])] == [5, 4, 9]


def test_tour_of_one_or_none(point):
    assert build_tour([]) == []
    assert [s.id for s in build_tour([point(3)])] == [3]


# Scheduling

def test_single_school_arrives_at_floor(point, config):
    stops = schedule_tour([point(1, dismissal=time(15, 30))], config, SERVICE_DATE)

    assert len(stops) == 1
    assert stops[0].order_index == 1
    assert stops[0].estimated_arrival_time == time(15, 20)
    assert stops[0].alert_threshold_minutes == 10


def test_arrivals_are_non_decreasing(point, config):
    tour = build_tour([
        point(1, students=2, dismissal=time(15, 30), lat=40.00),
        point(2, students=6, dismissal=time(14, 45), lat=40.03),
        point(3, students=4, dismissal=time(15, 0), lat=40.08, lon=-75.05),
        point(4, students=1, dismissal=time(15, 10), lat=40.01, lon=-75.1),
    ])
    stops = schedule_tour(tour, config, SERVICE_DATE)

    arrivals = [s.estimated_arrival for s in stops]
    assert arrivals == sorted(arrivals)
    assert [s.order_index for s in stops] == [1, 2, 3, 4]


def test_travel_and_dwell_are_added(point, config):
    # 0.05 deg latitude ~ 5.56 km -> 10 min at 32 km/h, plus 10 min buffer
    first = point(1, students=6, dismissal=time(15, 0), lat=40.0)
    second = point(2, students=4, dismissal=time(15, 0), lat=40.05)
    stops = schedule_tour([first, second], config, SERVICE_DATE)

    assert stops[0].estimated_arrival_time == time(14, 50)
    assert stops[0].dwell_minutes == 12
    assert stops[1].estimated_arrival_time == time(15, 22)


@pytest.mark.parametrize("students,expected", [(1, 5), (4, 8), (10, 15)])
def test_dwell_is_clamped(point, config, students, expected):
    assert dwell_minutes(point(1, students=students), config) == expected


def test_half_minute_of_travel_rounds_up(point, monkeypatch):
    monkeypatch.setattr(scheduling, "distance_km", lambda *args: 1.25)
    config = OptimizationConfig(driver_count=1, vehicle_capacity=12, assumed_speed_kmh=30, buffer_minutes=0)

    assert travel_minutes(point(1), point(2), config) == 3



# Metrics

def test_metrics_without_warnings(point, config):
    stops = schedule_tour(build_tour([
        point(2, students=6, dismissal=time(15, 5), lat=40.05),
        point(3, students=4, dismissal=time(15, 10), lat=40.06),
    ]), config, SERVICE_DATE)
    metrics = evaluate_route(stops, config)

    assert metrics.total_students == 10
    assert metrics.seat_utilization_percent == pytest.approx(83.3, abs=0.1)
    assert metrics.total_distance_km == pytest.approx(1.11, abs=0.01)
    assert metrics.total_time_minutes == int(
        (stops[-1].estimated_arrival - stops[0].estimated_arrival).total_seconds() // 60
    )
    assert metrics.warnings == ()


def test_metrics_warnings(point):
    config = OptimizationConfig(driver_count=1, vehicle_capacity=12, max_route_time_minutes=30)
    stops = schedule_tour([
        point(1, students=6, dismissal=time(15, 0), lat=40.0),
        point(2, students=5, dismissal=time(15, 0), lat=40.4),
    ], config, SERVICE_DATE)
    warnings = evaluate_route(stops, config).warnings

    assert any("High capacity utilization" in w for w in warnings)
    assert any("exceeds maximum time" in w for w in warnings)
    assert any("Long route distance" in w for w in warnings)
    assert not any("Tight timing" in w for w in warnings)


def test_tight_timing_warning(point, config):
    first = point(1, students=2, dismissal=time(15, 0), lat=40.0)
    second = point(2, students=2, dismissal=time(14, 40), lat=40.001)
    start = datetime.combine(SERVICE_DATE, time(14, 50))
    stops = schedule_tour([first, second], config, SERVICE_DATE)

    assert stops[0].estimated_arrival == start
    assert stops[1].estimated_arrival == start + timedelta(minutes=15)
    assert any("Tight timing" in w for w in evaluate_route(stops, config).warnings)


def test_metrics_of_empty_route(config):
    metrics = evaluate_route([], config)
    assert metrics.total_students == 0
    assert metrics.total_distance_km == 0
    assert metrics.warnings == ()

def test_metrics_reject_invalid_configuration():
    config = OptimizationConfig(driver_count=1, vehicle_capacity=0)
    with pytest.raises(InvalidConfigurationError):
        evaluate_route([], config)



# Pipeline

def test_plan_covers_all_schools(config):
    records = [
        Record(1, 40.00, -75.0, time(15, 0), 8, "Adams"),
        Record(2, 40.05, -75.0, time(15, 5), 6, "Baker"),
        Record(3, 40.06, -75.0, "15:10", 4, "Carver"),
    ]
    plan = plan_routes(records, config, service_date=SERVICE_DATE, driver_ids=[11, 12])

    assert not plan.has_errors
    assert sorted(i for r in plan.routes for i in r.school_ids) == [1, 2, 3]
    assert [r.driver_id for r in plan.routes] == [11, 12]
    assert plan.total_students == 18
    assert plan.unassigned_school_ids == ()


def test_bad_records_are_excluded_with_warnings(config):
    records = [
        Record(1, 40.0, -75.0, time(15, 0), 5),
        Record(2, None, -75.0, time(15, 0), 5),
        Record(3, 40.0, -75.0, time(15, 0), 0),
        Record(4, 95.0, -75.0, time(15, 0), 3),
        Record(5, 40.0, -75.0, "3pm", 3),
    ]
    plan = plan_routes(records, config, service_date=SERVICE_DATE)

    assert plan.excluded_school_ids == (2, 3, 4, 5)
    assert len(plan.warnings) == 4
    assert [r.school_ids for r in plan.routes] == [(1,)]


def test_no_valid_schools_gives_empty_plan(config):
    plan = plan_routes([Record(1, None, None, time(15, 0), 4)], config, service_date=SERVICE_DATE)
    assert plan.routes == ()
    assert plan.excluded_school_ids == (1,)


def test_overflow_is_reported_not_dropped():
    config = OptimizationConfig(driver_count=1, vehicle_capacity=12)
    records = [
        Record(1, 40.0, -75.0, time(15, 0), 8),
        Record(2, 40.1, -75.0, time(15, 0), 8),
    ]
    plan = plan_routes(records, config, service_date=SERVICE_DATE)

    assert plan.has_errors
    assert len(plan.routes) == 2
    assert plan.routes[1].overflow
    assert plan.unassigned_school_ids == (2,)
    assert len(plan.assignable_routes) == 1


def test_school_larger_than_vehicle_is_an_error(config):
    records = [Record(1, 40.0, -75.0, time(15, 0), 15, "Big School")]
    plan = plan_routes(records, config, service_date=SERVICE_DATE)

    assert plan.has_errors
    assert plan.routes[0].oversized
    assert "Big School" in plan.errors[0]


def test_fewer_driver_ids_than_drivers(config):
    with pytest.raises(InsufficientDriversError):
        plan_routes([Record(1, 40.0, -75.0, time(15, 0), 5)], config, driver_ids=[1])


def test_unassignable_routes_get_no_driver():
    config = OptimizationConfig(driver_count=3, vehicle_capacity=12)
    records = [
        Record(1, 40.0, -75.0, time(15, 0), 20, "Big School"),
        Record(2, 40.01, -75.0, time(15, 0), 5),
    ]
    plan = plan_routes(records, config, service_date=SERVICE_DATE, driver_ids=[101, 102, 103])

    oversized = next(r for r in plan.routes if r.oversized)
    assert oversized.driver_id is None
    assert [r.driver_id for r in plan.assignable_routes] == [101]
