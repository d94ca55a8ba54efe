import asyncio
import threading
from datetime import datetime, time, timedelta

import pytest

from schoolrun.models import AlertType, DriverPosition, MissedSchoolAlert, StopArrival, TripStatus
from schoolrun.repositories.alert_repo import alert_repository
from schoolrun.repositories.trip_repo import trip_repository
from schoolrun.services.alert_service import AlertDeduplicator
from schoolrun.services.monitor_service import GeofenceMonitor, classify_stop

from .conftest import FAR_LAT, NEAR_LAT, SCHOOL_LON, FailingNotifier, RecordingNotifier, utc


def add_position(db, trip, latitude, recorded_at, longitude=SCHOOL_LON):
    db.add(DriverPosition(trip_id=trip.id, driver_id=trip.driver_id, latitude=latitude,
                          longitude=longitude, recorded_at=recorded_at))
    db.commit()


def alert_types(db, trip):
    db.expire_all()
    return sorted(a.alert_type for a in alert_repository.search(db, trip_id=trip.id))


# classify_stop

EXPECTED = datetime(2024, 9, 16, 15, 30)


@pytest.mark.parametrize("now,distance,result", [
    (datetime(2024, 9, 16, 15, 0), 3.0, None),
    (datetime(2024, 9, 16, 15, 19), 3.0, None),
    (datetime(2024, 9, 16, 15, 20), 3.0, AlertType.LATE_ARRIVAL),
    (datetime(2024, 9, 16, 15, 30), 3.0, AlertType.LATE_ARRIVAL),
    (datetime(2024, 9, 16, 15, 31), 3.0, AlertType.MISSED_SCHOOL),
    (datetime(2024, 9, 16, 15, 25), 1.0, None),
    (datetime(2024, 9, 16, 16, 0), 0.4, None),
])
def test_classify_stop(now, distance, result):
    assert classify_stop(now, EXPECTED, 10, distance, 1.0) == result


# Scanning

def test_late_then_missed_without_duplicates(db, make_school, make_trip, monitor, notifier):
    school = make_school(dismissal=time(15, 40))
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(15, 20))

    report = monitor.scan_once(utc(15, 22))
    assert report.trips_scanned == 1
    assert report.alerts_created == 1
    assert alert_types(db, trip) == ["late_arrival"]

    assert monitor.scan_once(utc(15, 22)).alerts_created == 0
    assert alert_types(db, trip) == ["late_arrival"]

    assert monitor.scan_once(utc(15, 35)).alerts_created == 1
    assert alert_types(db, trip) == ["late_arrival", "missed_school"]

    assert monitor.scan_once(utc(15, 50)).alerts_created == 0
    assert [n.alert_type for n in notifier.sent] == ["late_arrival", "missed_school"]


def test_alert_records_decision_details(db, make_school, make_trip, monitor):
    school = make_school(name="Roosevelt Middle", dismissal=time(15, 40))
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(15, 30))

    monitor.scan_once(utc(15, 36))

    alert = db.query(MissedSchoolAlert).one()
    assert alert.alert_type == "missed_school"
    assert alert.severity == "urgent"
    assert alert.driver_id == 7
    assert alert.driver_latitude == pytest.approx(FAR_LAT)
    assert alert.distance_km == pytest.approx(3.0, abs=0.05)
    assert alert.expected_time.replace(tzinfo=None) == datetime(2024, 9, 16, 15, 30)
    assert alert.sent is True


def test_driver_near_school_never_alerts(db, make_school, make_trip, monitor):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, NEAR_LAT, utc(15, 20))

    for now in (utc(15, 25), utc(15, 30), utc(15, 45)):
        assert monitor.scan_once(now).alerts_created == 0
    assert alert_types(db, trip) == []


def test_arrived_stop_is_not_checked(db, make_school, make_trip, monitor):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(15, 40))
    db.add(StopArrival(trip_id=trip.id, route_stop_id=trip.route.stops[0].id, arrived_at=utc(15, 28)))
    db.commit()

    assert monitor.scan_once(utc(15, 45)).alerts_created == 0


def test_each_stop_is_judged_on_its_own_time(db, make_school, make_trip, monitor):
    first = make_school(name="First")
    second = make_school(name="Second", latitude=40.3)
    trip = make_trip([(first, time(15, 30)), (second, time(16, 30))])
    add_position(db, trip, FAR_LAT, utc(15, 30))

    monitor.scan_once(utc(15, 35))

    db.expire_all()
    alerts = alert_repository.search(db, trip_id=trip.id)
    assert [(a.route_stop_id, a.alert_type) for a in alerts] == [(trip.route.stops[0].id, "missed_school")]


def test_only_in_progress_trips_are_scanned(db, make_school, make_trip, monitor):
    school = make_school()
    trip = make_trip([(school, time(15, 30))], status=TripStatus.SCHEDULED)
    add_position(db, trip, FAR_LAT, utc(15, 30))

    report = monitor.scan_once(utc(15, 45))
    assert report.trips_scanned == 0
    assert alert_types(db, trip) == []


def test_trip_without_position_is_left_alone(db, make_school, make_trip, monitor):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])

    report = monitor.scan_once(utc(15, 45))
    assert report.trips_without_position == 1
    assert report.alerts_created == 0


def test_latest_position_wins(db, make_school, make_trip, monitor):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, NEAR_LAT, utc(15, 10))
    add_position(db, trip, FAR_LAT, utc(15, 20))

    assert trip_repository.get_latest_position(db, trip.id).latitude == pytest.approx(FAR_LAT)
    assert monitor.scan_once(utc(15, 25)).alerts_created == 1


def test_stale_position_is_still_evaluated(db, make_school, make_trip, monitor):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(14, 0))

    assert monitor.scan_once(utc(15, 45)).alerts_created == 1


def test_failing_trip_is_skipped_and_others_continue(db, make_school, make_trip, monitor, monkeypatch):
    school = make_school()
    broken = make_trip([(school, time(15, 30))])
    healthy = make_trip([(school, time(15, 30))])
    add_position(db, broken, FAR_LAT, utc(15, 30))
    add_position(db, healthy, FAR_LAT, utc(15, 30))

    original = trip_repository.get_latest_position

    def flaky(session, trip_id):
        if trip_id == broken.id:
            raise RuntimeError("position feed unavailable")
        return original(session, trip_id)

    monkeypatch.setattr(trip_repository, "get_latest_position", flaky)

    report = monitor.scan_once(utc(15, 45))
    assert report.trips_skipped == 1
    assert report.trips_scanned == 1
    assert alert_types(db, broken) == []
    assert alert_types(db, healthy) == ["missed_school"]

    monkeypatch.undo()
    assert monitor.scan_once(utc(15, 46)).alerts_created == 1
    assert alert_types(db, broken) == ["missed_school"]


def test_failed_delivery_is_retried_not_recreated(db, make_school, make_trip, session_factory, clock):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(15, 30))

    failing = FailingNotifier()
    monitor = GeofenceMonitor(session_factory, failing, timezone="UTC", clock=clock)

    report = monitor.scan_once(utc(15, 45))
    assert report.alerts_created == 1
    assert report.alerts_delivered == 0
    assert report.delivery_failures == 1
    db.expire_all()
    assert db.query(MissedSchoolAlert).one().sent is False

    recording = RecordingNotifier()
    monitor.notifier = recording
    report = monitor.scan_once(utc(15, 47))
    assert report.alerts_created == 0
    assert report.alerts_delivered == 1
    assert len(recording.sent) == 1
    assert recording.sent[0].school_name == "Lincoln Elementary"

    db.expire_all()
    alert = db.query(MissedSchoolAlert).one()
    assert alert.sent is True
    assert alert.sent_at is not None


def test_overlapping_scans_create_one_alert(db, make_school, make_trip, monitor):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(15, 30))

    start = threading.Barrier(2)
    reports = []

    def scan():
        start.wait()
        reports.append(monitor.scan_once(utc(15, 45)))

    threads = [threading.Thread(target=scan) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert sum(r.alerts_created for r in reports) == 1
    assert alert_types(db, trip) == ["missed_school"]


def test_insert_is_conditional_on_unique_key(db, make_school, make_trip):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    stop = trip.route.stops[0]
    values = {
        'trip_id': trip.id,
        'route_stop_id': stop.id,
        'alert_type': 'late_arrival',
        'severity': 'high',
        'expected_time': utc(15, 30),
        'detected_at': utc(15, 22),
        'sent': False,
    }

    assert alert_repository.insert_if_absent(db, values) is True
    assert alert_repository.insert_if_absent(db, dict(values, detected_at=utc(15, 24))) is False
    db.commit()
    assert db.query(MissedSchoolAlert).count() == 1


def test_deduplicator_raises_once(db, make_school, make_trip):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    stop = trip.route.stops[0]
    dedup = AlertDeduplicator()

    kwargs = dict(trip=trip, stop=stop, alert_type=AlertType.MISSED_SCHOOL,
                  expected_time=utc(15, 30), detected_at=utc(15, 40))
    assert dedup.raise_once(db, **kwargs) is True
    db.commit()
    assert dedup.already_raised(db, trip.id, stop.id, AlertType.MISSED_SCHOOL)
    assert not dedup.already_raised(db, trip.id, stop.id, AlertType.LATE_ARRIVAL)
    assert dedup.raise_once(db, **dict(kwargs, detected_at=utc(15, 42))) is False


def test_timer_loop_starts_and_stops(db, make_school, make_trip, session_factory, clock, notifier):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(15, 30))
    clock.now = utc(15, 35)
    monitor = GeofenceMonitor(session_factory, notifier, interval_seconds=60, timezone="UTC", clock=clock)

    async def scenario():
        monitor.start()
        assert monitor.is_running
        for _ in range(200):
            if notifier.sent:
                break
            await asyncio.sleep(0.01)
        await monitor.stop()

    asyncio.run(scenario())

    assert not monitor.is_running
    assert [n.alert_type for n in notifier.sent] == ["missed_school"]


def test_local_timezone_is_applied(db, make_school, make_trip, session_factory, notifier):
    school = make_school()
    trip = make_trip([(school, time(15, 30))])
    add_position(db, trip, FAR_LAT, utc(19, 0))
    monitor = GeofenceMonitor(session_factory, notifier, timezone="America/New_York")

    # 15:30 EDT is 19:30 UTC
    assert monitor.scan_once(utc(19, 25)).alerts_created == 1
    assert notifier.sent[0].alert_type == "late_arrival"
    assert notifier.sent[0].expected_time.replace(tzinfo=None) - datetime(2024, 9, 16, 19, 30) == timedelta(0)
    assert "(expected 15:30 EDT)" in notifier.sent[0].message
