"""
Persisted route definitions. A route is an ordered list of school stops
assigned to one driver. Routes are written once per optimization run and
never patched; a new run deactivates the old set and inserts a new one.
"""
from sqlalchemy import Column, String, Float, Integer, Boolean, Time, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Route(BaseModel):
    __tablename__ = 'routes'

    name = Column(String(255), nullable=False)
    driver_id = Column(Integer, nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Metrics captured when the route was built
    total_distance_km = Column(Float, default=0.0, nullable=False)
    total_time_minutes = Column(Integer, default=0, nullable=False)
    seat_utilization_percent = Column(Float, default=0.0, nullable=False)

    stops = relationship(
        "RouteStop",
        back_populates="route",
        order_by="RouteStop.order_index",
        cascade="all, delete-orphan",
    )
    trips = relationship("Trip", back_populates="route")

    @property
    def total_students(self) -> int:
        return sum(stop.school.student_count for stop in self.stops if stop.school)


class RouteStop(BaseModel):
    __tablename__ = 'route_stops'

    route_id = Column(Integer, ForeignKey('routes.id'), nullable=False, index=True)
    school_id = Column(Integer, ForeignKey('schools.id'), nullable=False, index=True)
    order_index = Column(Integer, nullable=False)  # 1-based
    estimated_arrival_time = Column(Time, nullable=False)  # local time-of-day
    alert_threshold_minutes = Column(Integer, default=10, nullable=False)

    route = relationship("Route", back_populates="stops")
    school = relationship("School")

    __table_args__ = (
        UniqueConstraint('route_id', 'order_index', name='uq_route_stop_order'),
        UniqueConstraint('route_id', 'school_id', name='uq_route_stop_school'),
    )

    def __repr__(self):
        return (f"<RouteStop(route_id={self.route_id}, school_id={self.school_id}, "
                f"order={self.order_index}, eta={self.estimated_arrival_time})>")
