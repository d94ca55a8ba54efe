# schoolrun/api/v1/endpoints/trips.py
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from ....config.settings import Settings
from ....models.trip import TripStatus
from ....core.dependencies import get_app_settings, get_trip_service
from ....schemas.alert import AlertOut
from ....schemas.trip import (
    ArrivalCreate, ArrivalOut, PositionCreate, PositionOut, TripCreate, TripOut
)
from ....services.trip_service import TripService
from ....utils.date_utils import local_today

router = APIRouter()


@router.post("", response_model=TripOut, status_code=201)
def create_trip(
    trip_in: TripCreate,
    service: TripService = Depends(get_trip_service),
    settings: Settings = Depends(get_app_settings)
):
    """Schedule a trip on an active route (defaults to today in the service timezone)"""
    service_date = trip_in.service_date or local_today(settings.TIMEZONE)
    return service.create_trip(trip_in.route_id, service_date, trip_in.driver_id)


@router.get("", response_model=List[TripOut])
def list_trips(
    status: Optional[TripStatus] = Query(None),
    service_date: Optional[date] = Query(None),
    route_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    service: TripService = Depends(get_trip_service)
):
    """Trips, newest first"""
    return service.list_trips(status=status, service_date=service_date, route_id=route_id, skip=skip, limit=limit)


@router.get("/{trip_id}", response_model=TripOut)
def get_trip(trip_id: int, service: TripService = Depends(get_trip_service)):
    return service.get_trip(trip_id)


@router.post("/{trip_id}/start", response_model=TripOut)
def start_trip(trip_id: int, service: TripService = Depends(get_trip_service)):
    return service.start_trip(trip_id)


@router.post("/{trip_id}/complete", response_model=TripOut)
def complete_trip(trip_id: int, service: TripService = Depends(get_trip_service)):
    return service.complete_trip(trip_id)


@router.post("/{trip_id}/cancel", response_model=TripOut)
def cancel_trip(trip_id: int, service: TripService = Depends(get_trip_service)):
    return service.cancel_trip(trip_id)


@router.post("/{trip_id}/positions", response_model=PositionOut, status_code=201)
def report_position(
    trip_id: int,
    position: PositionCreate,
    service: TripService = Depends(get_trip_service)
):
    """Driver device reports a GPS fix"""
    return service.record_position(
        trip_id,
        latitude=position.latitude,
        longitude=position.longitude,
        recorded_at=position.recorded_at,
        accuracy=position.accuracy,
        speed=position.speed,
    )


@router.post("/{trip_id}/stops/{stop_id}/arrival", response_model=ArrivalOut)
def mark_stop_arrival(
    trip_id: int,
    stop_id: int,
    arrival: Optional[ArrivalCreate] = None,
    service: TripService = Depends(get_trip_service)
):
    """Mark a stop as reached; the monitor stops checking it"""
    return service.mark_arrival(trip_id, stop_id, arrival.arrived_at if arrival else None)


@router.get("/{trip_id}/alerts", response_model=List[AlertOut])
def get_trip_alerts(trip_id: int, service: TripService = Depends(get_trip_service)):
    return service.get_alerts(trip_id)
