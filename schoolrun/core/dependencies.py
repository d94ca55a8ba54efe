# schoolrun/core/dependencies.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .database import get_db
from ..config.settings import Settings, get_settings
from ..services.monitor_service import GeofenceMonitor
from ..services.route_service import RouteService
from ..services.trip_service import TripService


def get_app_settings() -> Settings:
    return get_settings()


def get_route_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
) -> RouteService:
    return RouteService(db, settings)


def get_trip_service(db: Session = Depends(get_db)) -> TripService:
    return TripService(db)


def get_monitor(request: Request) -> GeofenceMonitor:
    """The application's monitor, created on demand when the timer is disabled."""
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        from .database import SessionLocal
        monitor = GeofenceMonitor.from_settings(get_settings(), SessionLocal)
        request.app.state.monitor = monitor
    return monitor
