"""
Alert delivery interface. The monitor decides when and what to alert;
a Notifier only hands the alert on to people.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config.logging import get_logger
from ..models.alert import MissedSchoolAlert
from ..utils.date_utils import ensure_utc, get_timezone

logger = get_logger(__name__)


@dataclass(frozen=True)
class AlertNotification:
    """Payload handed to a Notifier for one alert."""
    alert_id: int
    trip_id: int
    stop_id: int
    alert_type: str
    severity: str
    expected_time: datetime
    detected_at: datetime
    driver_id: Optional[int] = None
    school_id: Optional[int] = None
    school_name: Optional[str] = None
    distance_km: Optional[float] = None
    timezone: str = "UTC"

    @classmethod
    def from_alert(cls, alert: MissedSchoolAlert, timezone: str = "UTC") -> "AlertNotification":
        school = alert.route_stop.school if alert.route_stop is not None else None
        return cls(
            alert_id=alert.id,
            trip_id=alert.trip_id,
            stop_id=alert.route_stop_id,
            alert_type=alert.alert_type,
            severity=alert.severity,
            expected_time=alert.expected_time,
            detected_at=alert.detected_at,
            driver_id=alert.driver_id,
            school_id=school.id if school else None,
            school_name=school.name if school else None,
            distance_km=alert.distance_km,
            timezone=timezone,
        )

    @property
    def message(self) -> str:
        school = self.school_name or f"stop {self.stop_id}"
        expected = ensure_utc(self.expected_time).astimezone(get_timezone(self.timezone))
        if self.alert_type == "missed_school":
            return f"Driver has missed pickup at {school} (expected {expected:%H:%M %Z})"
        return f"Driver is running late for {school} (expected {expected:%H:%M %Z})"


class Notifier(ABC):
    """Delivers alerts to admins and drivers. Raising marks the delivery as failed."""

    @abstractmethod
    def notify(self, notification: AlertNotification) -> None:
        ...


class LoggingNotifier(Notifier):
    """Default notifier: writes the alert to the application log."""

    def notify(self, notification: AlertNotification) -> None:
        extra = {
            'trip_id': notification.trip_id,
            'stop_id': notification.stop_id,
            'alert_type': notification.alert_type,
            'severity': notification.severity,
        }
        if notification.severity == "urgent":
            logger.error(notification.message, extra=extra)
        else:
            logger.warning(notification.message, extra=extra)
