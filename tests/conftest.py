from datetime import date, datetime, time
from typing import List

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from schoolrun.config.settings import get_settings_by_env
from schoolrun.core.database import get_db, init_db
from schoolrun.core.dependencies import get_app_settings, get_monitor
from schoolrun.main import app
from schoolrun.models import Route, RouteStop, School, Trip, TripStatus
from schoolrun.optimization import OptimizationConfig, SchoolPoint
from schoolrun.services.monitor_service import GeofenceMonitor
from schoolrun.services.notification_service import Notifier

SERVICE_DATE = date(2024, 9, 16)

# ~3 km and ~0.5 km north of the school used in the monitor scenarios
SCHOOL_LAT, SCHOOL_LON = 40.0, -75.0
FAR_LAT = SCHOOL_LAT + 0.027
NEAR_LAT = SCHOOL_LAT + 0.005


def utc(hour: int, minute: int = 0) -> datetime:
    return pytz.UTC.localize(datetime.combine(SERVICE_DATE, time(hour, minute)))


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def notify(self, notification):
        self.sent.append(notification)


class FailingNotifier(Notifier):
    def __init__(self):
        self.attempts = 0

    def notify(self, notification):
        self.attempts += 1
        raise ConnectionError("SMS gateway unavailable")


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings():
    return get_settings_by_env("testing")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_school(db):
    def _make(name="Lincoln Elementary", latitude=SCHOOL_LAT, longitude=SCHOOL_LON,
              dismissal=time(15, 0), students=8, is_active=True):
        school = School(
            name=name,
            latitude=latitude,
            longitude=longitude,
            dismissal_time=dismissal,
            student_count=students,
            is_active=is_active,
        )
        db.add(school)
        db.commit()
        db.refresh(school)
        return school
    return _make


@pytest.fixture
def make_trip(db):
    """Active route with the given (school, eta) stops and a trip on it."""
    def _make(stops: List, status=TripStatus.IN_PROGRESS, threshold=10, driver_id=7):
        route = Route(name="Route 1", driver_id=driver_id, is_active=True)
        route.stops = [
            RouteStop(school_id=school.id, order_index=index, estimated_arrival_time=eta,
                      alert_threshold_minutes=threshold)
            for index, (school, eta) in enumerate(stops, start=1)
        ]
        db.add(route)
        db.flush()
        trip = Trip(route_id=route.id, driver_id=driver_id, service_date=SERVICE_DATE, status=status.value)
        db.add(trip)
        db.commit()
        db.refresh(trip)
        return trip
    return _make


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return FixedClock(utc(15, 0))


@pytest.fixture
def monitor(session_factory, notifier, clock):
    return GeofenceMonitor(session_factory, notifier, timezone="UTC", clock=clock)


@pytest.fixture
def config():
    return OptimizationConfig(driver_count=2, vehicle_capacity=12)


@pytest.fixture
def point():
    def _point(id, students=4, dismissal=time(15, 0), lat=SCHOOL_LAT, lon=SCHOOL_LON, name=""):
        return SchoolPoint(id=id, latitude=lat, longitude=lon, dismissal_time=dismissal,
                           student_count=students, name=name)
    return _point


@pytest.fixture
def client(session_factory, settings, monitor):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_monitor] = lambda: monitor
    yield TestClient(app)
    app.dependency_overrides.clear()
