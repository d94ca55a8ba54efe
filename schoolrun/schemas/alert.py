from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from ..models.alert import AlertType, AlertSeverity


class AlertOut(BaseModel):
    id: int
    trip_id: int
    route_stop_id: int
    driver_id: Optional[int] = None
    alert_type: AlertType
    severity: AlertSeverity
    expected_time: datetime
    detected_at: datetime
    driver_latitude: Optional[float] = None
    driver_longitude: Optional[float] = None
    distance_km: Optional[float] = None
    sent: bool
    sent_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ScanReportOut(BaseModel):
    started_at: datetime
    trips_scanned: int
    trips_skipped: int
    trips_without_position: int
    alerts_created: int
    alerts_delivered: int
    delivery_failures: int

    model_config = ConfigDict(from_attributes=True)
