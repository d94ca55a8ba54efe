"""
Missed school alerts raised by the geofence monitor.

The unique constraint on (trip_id, route_stop_id, alert_type) is what
makes alert creation idempotent: inserts go through ON CONFLICT DO NOTHING,
so overlapping scans can never produce a second row for the same key.
"""
import enum

from sqlalchemy import Column, String, Float, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class AlertType(str, enum.Enum):
    LATE_ARRIVAL = "late_arrival"
    MISSED_SCHOOL = "missed_school"


class AlertSeverity(str, enum.Enum):
    HIGH = "high"
    URGENT = "urgent"


ALERT_SEVERITY = {
    AlertType.LATE_ARRIVAL: AlertSeverity.HIGH,
    AlertType.MISSED_SCHOOL: AlertSeverity.URGENT,
}


class MissedSchoolAlert(BaseModel):
    __tablename__ = 'missed_school_alerts'

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    route_stop_id = Column(Integer, ForeignKey('route_stops.id'), nullable=False)
    driver_id = Column(Integer, nullable=True)
    alert_type = Column(String(20), nullable=False)
    severity = Column(String(10), nullable=False)

    expected_time = Column(DateTime(timezone=True), nullable=False)  # UTC
    detected_at = Column(DateTime(timezone=True), nullable=False)  # UTC

    # Driver fix the decision was made on
    driver_latitude = Column(Float, nullable=True)
    driver_longitude = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)

    # Only mutable part of an alert
    sent = Column(Boolean, default=False, nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    trip = relationship("Trip")
    route_stop = relationship("RouteStop")

    __table_args__ = (
        UniqueConstraint('trip_id', 'route_stop_id', 'alert_type', name='uq_alert_trip_stop_type'),
    )

    def __repr__(self):
        return (f"<MissedSchoolAlert(trip_id={self.trip_id}, stop_id={self.route_stop_id}, "
                f"type='{self.alert_type}', sent={self.sent})>")
