from .base import Base, BaseModel
from .school import School
from .route import Route, RouteStop
from .trip import Trip, TripStatus, StopArrival, DriverPosition
from .alert import MissedSchoolAlert, AlertType, AlertSeverity, ALERT_SEVERITY

__all__ = [
    "Base",
    "BaseModel",
    "School",
    "Route",
    "RouteStop",
    "Trip",
    "TripStatus",
    "StopArrival",
    "DriverPosition",
    "MissedSchoolAlert",
    "AlertType",
    "AlertSeverity",
    "ALERT_SEVERITY",
]
