from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from ..config.logging import get_logger, log_alert_event
from ..models.alert import ALERT_SEVERITY, AlertType
from ..models.route import RouteStop
from ..models.trip import Trip, DriverPosition
from ..repositories.alert_repo import AlertRepository, alert_repository

logger = get_logger(__name__)


class AlertDeduplicator:
    """
    Guarantees at most one alert per (trip, stop, alert type).

    already_raised() is a cheap pre-check; raise_once() is the authority,
    since the insert itself is conditional on the unique key.
    """

    def __init__(self, repository: Optional[AlertRepository] = None):
        self.repository = repository or alert_repository

    def already_raised(self, db: Session, trip_id: int, stop_id: int, alert_type: AlertType) -> bool:
        return self.repository.exists(db, trip_id, stop_id, AlertType(alert_type).value)

    def raise_once(
        self,
        db: Session,
        *,
        trip: Trip,
        stop: RouteStop,
        alert_type: AlertType,
        expected_time: datetime,
        detected_at: datetime,
        position: Optional[DriverPosition] = None,
        distance_km: Optional[float] = None,
    ) -> bool:
        """Create the alert unless it exists. Returns True if this call created it."""
        alert_type = AlertType(alert_type)
        if self.already_raised(db, trip.id, stop.id, alert_type):
            return False

        severity = ALERT_SEVERITY[alert_type]
        created = self.repository.insert_if_absent(db, {
            'trip_id': trip.id,
            'route_stop_id': stop.id,
            'driver_id': trip.driver_id,
            'alert_type': alert_type.value,
            'severity': severity.value,
            'expected_time': expected_time,
            'detected_at': detected_at,
            'driver_latitude': position.latitude if position else None,
            'driver_longitude': position.longitude if position else None,
            'distance_km': round(distance_km, 3) if distance_km is not None else None,
            'sent': False,
        })

        if created:
            log_alert_event("created", trip.id, stop.id, alert_type.value, severity.value)
        else:
            logger.debug(f"Alert {alert_type.value} for trip {trip.id} stop {stop.id} already exists")
        return created
