"""
Geofence monitor for missed school pickups.

Every interval the monitor looks at each in-progress trip, takes the
driver's latest reported position and checks every stop not yet reached:

* driver within the geofence radius of the school: nothing to do
* inside the alert window before the expected arrival: late_arrival
* past the expected arrival: missed_school

Per (trip, stop) the alert state only moves forward, NONE -> LATE_WARNED
-> MISSED, and a stop with a missed_school alert is no longer evaluated.
Scans are serialized by a lock and alert inserts are conditional on a
unique key, so overlapping scans cannot duplicate an alert.
"""
import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..config.logging import get_logger, log_alert_event
from ..models.alert import AlertType
from ..models.route import RouteStop
from ..models.trip import Trip
from ..repositories.alert_repo import alert_repository
from ..repositories.trip_repo import trip_repository
from ..utils.date_utils import ensure_utc, is_stale, local_datetime, utc_now
from ..utils.geo_utils import distance_km, is_valid_coordinate
from .alert_service import AlertDeduplicator
from .notification_service import AlertNotification, LoggingNotifier, Notifier

logger = get_logger(__name__)


def classify_stop(
    now: datetime,
    expected: datetime,
    threshold_minutes: int,
    distance: float,
    radius_km: float,
) -> Optional[AlertType]:
    """Decide which alert, if any, a stop deserves at this moment."""
    if distance <= radius_km:
        return None
    if now > expected:
        return AlertType.MISSED_SCHOOL
    if expected - timedelta(minutes=threshold_minutes) <= now:
        return AlertType.LATE_ARRIVAL
    return None


@dataclass
class ScanReport:
    started_at: datetime
    trips_scanned: int = 0
    trips_skipped: int = 0
    trips_without_position: int = 0
    alerts_created: int = 0
    alerts_delivered: int = 0
    delivery_failures: int = 0


class GeofenceMonitor:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        notifier: Optional[Notifier] = None,
        *,
        interval_seconds: int = 120,
        geofence_radius_km: float = 1.0,
        timezone: str = "UTC",
        stale_minutes: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or LoggingNotifier()
        self.interval_seconds = interval_seconds
        self.geofence_radius_km = geofence_radius_km
        self.timezone = timezone
        self.stale_minutes = stale_minutes
        self.clock = clock
        self.deduplicator = AlertDeduplicator()

        self._scan_lock = threading.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings, session_factory, notifier: Optional[Notifier] = None) -> "GeofenceMonitor":
        return cls(
            session_factory,
            notifier,
            interval_seconds=settings.MONITOR_INTERVAL_SECONDS,
            geofence_radius_km=settings.GEOFENCE_RADIUS_KM,
            timezone=settings.TIMEZONE,
            stale_minutes=settings.POSITION_STALE_MINUTES,
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def scan_once(self, now: Optional[datetime] = None) -> ScanReport:
        """Run one full pass over in-progress trips, then deliver pending alerts."""
        now = ensure_utc(now or self.clock())
        report = ScanReport(started_at=now)

        with self._scan_lock:
            with self.session_factory() as db:
                for trip in trip_repository.get_in_progress(db):
                    try:
                        created = self._scan_trip(db, trip, now, report)
                        db.commit()
                    except Exception as e:
                        db.rollback()
                        report.trips_skipped += 1
                        logger.warning(f"Skipping trip {trip.id} this scan: {e}", exc_info=True)
                        continue
                    report.trips_scanned += 1
                    report.alerts_created += created

                self._deliver_pending(db, now, report)

        logger.info(
            f"Geofence scan: {report.trips_scanned} trips scanned, {report.trips_skipped} skipped, "
            f"{report.alerts_created} alerts created, {report.alerts_delivered} delivered"
        )
        return report

    def _scan_trip(self, db: Session, trip: Trip, now: datetime, report: ScanReport) -> int:
        position = trip_repository.get_latest_position(db, trip.id)
        if position is None or not is_valid_coordinate(position.latitude, position.longitude):
            report.trips_without_position += 1
            logger.info(f"Trip {trip.id} has no usable position yet")
            return 0

        if is_stale(position.recorded_at, now, self.stale_minutes):
            logger.info(f"Trip {trip.id} position is stale (recorded {position.recorded_at}), evaluating anyway")

        created = 0
        for stop in self._pending_stops(db, trip):
            school = stop.school
            if school is None or not school.has_location:
                continue

            expected = local_datetime(trip.service_date, stop.estimated_arrival_time, self.timezone)
            distance = distance_km(position.latitude, position.longitude, school.latitude, school.longitude)
            alert_type = classify_stop(now, expected, stop.alert_threshold_minutes, distance, self.geofence_radius_km)
            if alert_type is None:
                continue

            if self.deduplicator.raise_once(
                db,
                trip=trip,
                stop=stop,
                alert_type=alert_type,
                expected_time=expected,
                detected_at=now,
                position=position,
                distance_km=distance,
            ):
                created += 1
        return created

    def _pending_stops(self, db: Session, trip: Trip) -> List[RouteStop]:
        """Stops not yet arrived at and not already marked missed, in route order."""
        arrived = trip_repository.get_arrived_stop_ids(db, trip.id)
        raised = alert_repository.get_keys_for_trip(db, trip.id)
        return [
            stop for stop in trip.route.stops
            if stop.id not in arrived and (stop.id, AlertType.MISSED_SCHOOL.value) not in raised
        ]

    def _deliver_pending(self, db: Session, now: datetime, report: ScanReport) -> None:
        for alert in alert_repository.get_unsent(db):
            notification = AlertNotification.from_alert(alert, timezone=self.timezone)
            try:
                self.notifier.notify(notification)
            except Exception as e:
                report.delivery_failures += 1
                logger.warning(f"Delivery of alert {alert.id} failed, will retry next scan: {e}")
                continue
            alert_repository.mark_sent(db, alert, now)
            report.alerts_delivered += 1
            log_alert_event("delivered", alert.trip_id, alert.route_stop_id, alert.alert_type, alert.severity)

    async def run(self):
        """Scan every interval until stop() is called."""
        loop = asyncio.get_running_loop()
        logger.info(f"Geofence monitor started (every {self.interval_seconds}s, radius {self.geofence_radius_km} km)")

        while not self._stop_event.is_set():
            try:
                await loop.run_in_executor(None, self.scan_once)
            except Exception as e:
                logger.error(f"Geofence scan failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Geofence monitor stopped")

    def start(self) -> asyncio.Task:
        """Schedule the scan loop on the running event loop."""
        if self.is_running:
            return self._task
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        """Stop the timer and wait for an in-flight scan to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
