from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from ..config.logging import get_logger
from ..core.exceptions import ConflictError, InvalidTripStatusError, NotFoundError
from ..models.alert import MissedSchoolAlert
from ..models.trip import Trip, TripStatus, StopArrival, DriverPosition
from ..repositories.alert_repo import alert_repository
from ..repositories.route_repo import route_repository
from ..repositories.trip_repo import trip_repository
from ..utils.date_utils import ensure_utc, utc_now
from ..utils.geo_utils import validate_coordinates

logger = get_logger(__name__)


class TripService:
    """Trip lifecycle, position reports and stop arrivals"""

    def __init__(self, db: Session):
        self.db = db

    def get_trip(self, trip_id: int) -> Trip:
        trip = trip_repository.get(self.db, trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)
        return trip

    def list_trips(
        self,
        status: Optional[TripStatus] = None,
        service_date: Optional[date] = None,
        route_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Trip]:
        filters = {
            'status': status.value if status else None,
            'service_date': service_date,
            'route_id': route_id,
        }
        return trip_repository.get_multi(self.db, skip=skip, limit=limit, filters=filters, sort_by="id", sort_order="desc")

    def create_trip(self, route_id: int, service_date: date, driver_id: Optional[int] = None) -> Trip:
        route = route_repository.get(self.db, route_id)
        if not route:
            raise NotFoundError("Route", route_id)
        if not route.is_active:
            raise ConflictError(f"Route {route_id} has been replaced and is no longer active")

        trip = trip_repository.create(self.db, obj_in={
            'route_id': route.id,
            'driver_id': driver_id if driver_id is not None else route.driver_id,
            'service_date': service_date,
            'status': TripStatus.SCHEDULED.value,
        })
        logger.info(f"Scheduled trip {trip.id} on route {route.id} for {service_date}")
        return trip

    def start_trip(self, trip_id: int, now: Optional[datetime] = None) -> Trip:
        return self._transition(trip_id, TripStatus.IN_PROGRESS, {'started_at': ensure_utc(now or utc_now())})

    def complete_trip(self, trip_id: int, now: Optional[datetime] = None) -> Trip:
        return self._transition(trip_id, TripStatus.COMPLETED, {'completed_at': ensure_utc(now or utc_now())})

    def cancel_trip(self, trip_id: int, now: Optional[datetime] = None) -> Trip:
        return self._transition(trip_id, TripStatus.CANCELLED, {'completed_at': ensure_utc(now or utc_now())})

    def record_position(
        self,
        trip_id: int,
        latitude: float,
        longitude: float,
        recorded_at: Optional[datetime] = None,
        accuracy: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> DriverPosition:
        validate_coordinates(latitude, longitude)
        trip = self.get_trip(trip_id)
        if trip.status in (TripStatus.COMPLETED.value, TripStatus.CANCELLED.value):
            raise ConflictError(f"Trip {trip_id} is {trip.status} and no longer accepts positions")

        return trip_repository.add_position(
            self.db,
            trip=trip,
            latitude=latitude,
            longitude=longitude,
            recorded_at=ensure_utc(recorded_at or utc_now()),
            accuracy=accuracy,
            speed=speed,
        )

    def mark_arrival(self, trip_id: int, stop_id: int, arrived_at: Optional[datetime] = None) -> StopArrival:
        trip = self.get_trip(trip_id)
        stop = route_repository.get_stop(self.db, trip.route_id, stop_id)
        if not stop:
            raise NotFoundError("Route stop", stop_id)

        arrival = trip_repository.mark_arrival(
            self.db, trip=trip, route_stop=stop, arrived_at=ensure_utc(arrived_at or utc_now())
        )
        logger.info(f"Trip {trip.id} arrived at stop {stop.id} (school {stop.school_id})")
        return arrival

    def get_alerts(self, trip_id: int) -> List[MissedSchoolAlert]:
        self.get_trip(trip_id)
        return alert_repository.search(self.db, trip_id=trip_id)

    def _transition(self, trip_id: int, new_status: TripStatus, values: dict) -> Trip:
        trip = self.get_trip(trip_id)
        if not trip.can_transition_to(new_status):
            raise InvalidTripStatusError(trip.id, trip.status, new_status.value)

        values['status'] = new_status.value
        trip = trip_repository.update(self.db, db_obj=trip, obj_in=values)
        logger.info(f"Trip {trip.id} is now {trip.status}")
        return trip
