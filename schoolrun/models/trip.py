"""
Trip tracking models: a driver's run of a route on one service date, the
GPS positions reported during it, and the stops reached so far.
"""
import enum

from sqlalchemy import Column, String, Float, Integer, Date, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel, TimestampMixin, Base


class TripStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Allowed lifecycle transitions
TRIP_TRANSITIONS = {
    TripStatus.SCHEDULED: {TripStatus.IN_PROGRESS, TripStatus.CANCELLED},
    TripStatus.IN_PROGRESS: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}


class Trip(BaseModel):
    __tablename__ = 'trips'

    route_id = Column(Integer, ForeignKey('routes.id'), nullable=False, index=True)
    driver_id = Column(Integer, nullable=True, index=True)
    service_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), default=TripStatus.SCHEDULED.value, nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    route = relationship("Route", back_populates="trips")
    arrivals = relationship("StopArrival", back_populates="trip", cascade="all, delete-orphan")
    positions = relationship("DriverPosition", back_populates="trip", cascade="all, delete-orphan")

    def can_transition_to(self, new_status: TripStatus) -> bool:
        return new_status in TRIP_TRANSITIONS[TripStatus(self.status)]

    def __repr__(self):
        return f"<Trip(id={self.id}, route_id={self.route_id}, status='{self.status}')>"


class StopArrival(TimestampMixin, Base):
    """Marks a route stop as reached for one trip."""
    __tablename__ = 'stop_arrivals'

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    route_stop_id = Column(Integer, ForeignKey('route_stops.id'), nullable=False)
    arrived_at = Column(DateTime(timezone=True), nullable=False)

    trip = relationship("Trip", back_populates="arrivals")
    route_stop = relationship("RouteStop")

    __table_args__ = (
        UniqueConstraint('trip_id', 'route_stop_id', name='uq_stop_arrival'),
    )


class DriverPosition(TimestampMixin, Base):
    """A single GPS fix reported by the driver's device."""
    __tablename__ = 'driver_positions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False)
    driver_id = Column(Integer, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)
    accuracy = Column(Float, nullable=True)  # meters
    speed = Column(Float, nullable=True)  # km/h

    trip = relationship("Trip", back_populates="positions")

    __table_args__ = (
        Index('idx_position_trip_time', 'trip_id', 'recorded_at'),
    )

    def __repr__(self):
        return (f"<DriverPosition(trip_id={self.trip_id}, "
                f"lat={self.latitude}, lon={self.longitude}, at='{self.recorded_at}')>")
