from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime, date

from ..models.trip import TripStatus


class TripCreate(BaseModel):
    route_id: int
    service_date: Optional[date] = None
    driver_id: Optional[int] = None


class TripOut(BaseModel):
    id: int
    route_id: int
    driver_id: Optional[int] = None
    service_date: date
    status: TripStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PositionCreate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    recorded_at: Optional[datetime] = None
    accuracy: Optional[float] = Field(None, ge=0)  # meters
    speed: Optional[float] = Field(None, ge=0)  # km/h


class PositionOut(BaseModel):
    id: int
    trip_id: int
    latitude: float
    longitude: float
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ArrivalCreate(BaseModel):
    arrived_at: Optional[datetime] = None


class ArrivalOut(BaseModel):
    trip_id: int
    route_stop_id: int
    arrived_at: datetime

    model_config = ConfigDict(from_attributes=True)
