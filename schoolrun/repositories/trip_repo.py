from datetime import datetime
from typing import List, Optional, Set
from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload

from ..models.route import Route, RouteStop
from ..models.trip import Trip, TripStatus, StopArrival, DriverPosition
from .base import CRUDBase


class TripRepository(CRUDBase[Trip]):
    def __init__(self):
        super().__init__(Trip)

    def get_in_progress(self, db: Session) -> List[Trip]:
        """Trips currently being driven, with their route stops loaded"""
        return (
            db.query(self.model)
            .options(
                selectinload(self.model.route)
                .selectinload(Route.stops)
                .selectinload(RouteStop.school)
            )
            .filter(self.model.status == TripStatus.IN_PROGRESS.value)
            .order_by(self.model.id)
            .all()
        )

    def get_latest_position(self, db: Session, trip_id: int) -> Optional[DriverPosition]:
        return (
            db.query(DriverPosition)
            .filter(DriverPosition.trip_id == trip_id)
            .order_by(desc(DriverPosition.recorded_at), desc(DriverPosition.id))
            .first()
        )

    def add_position(
        self,
        db: Session,
        *,
        trip: Trip,
        latitude: float,
        longitude: float,
        recorded_at: datetime,
        accuracy: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> DriverPosition:
        position = DriverPosition(
            trip_id=trip.id,
            driver_id=trip.driver_id,
            latitude=latitude,
            longitude=longitude,
            recorded_at=recorded_at,
            accuracy=accuracy,
            speed=speed,
        )
        db.add(position)
        db.commit()
        db.refresh(position)
        return position

    def get_arrived_stop_ids(self, db: Session, trip_id: int) -> Set[int]:
        rows = db.query(StopArrival.route_stop_id).filter(StopArrival.trip_id == trip_id).all()
        return {row.route_stop_id for row in rows}

    def get_arrival(self, db: Session, trip_id: int, route_stop_id: int) -> Optional[StopArrival]:
        return (
            db.query(StopArrival)
            .filter(StopArrival.trip_id == trip_id, StopArrival.route_stop_id == route_stop_id)
            .first()
        )

    def mark_arrival(self, db: Session, *, trip: Trip, route_stop: RouteStop, arrived_at: datetime) -> StopArrival:
        """Record that the driver reached a stop. Repeated calls keep the first arrival."""
        existing = self.get_arrival(db, trip.id, route_stop.id)
        if existing:
            return existing

        arrival = StopArrival(trip_id=trip.id, route_stop_id=route_stop.id, arrived_at=arrived_at)
        db.add(arrival)
        db.commit()
        db.refresh(arrival)
        return arrival


trip_repository = TripRepository()
