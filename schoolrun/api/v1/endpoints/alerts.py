# schoolrun/api/v1/endpoints/alerts.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ....core.database import get_db
from ....core.dependencies import get_monitor
from ....models.alert import AlertType
from ....repositories.alert_repo import alert_repository
from ....schemas.alert import AlertOut, ScanReportOut
from ....services.monitor_service import GeofenceMonitor

router = APIRouter()


@router.get("/alerts", response_model=List[AlertOut])
def list_alerts(
    trip_id: Optional[int] = Query(None),
    alert_type: Optional[AlertType] = Query(None),
    sent: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Missed school alerts, newest first"""
    return alert_repository.search(
        db,
        trip_id=trip_id,
        alert_type=alert_type.value if alert_type else None,
        sent=sent,
        skip=skip,
        limit=limit,
    )


@router.post("/monitor/scan", response_model=ScanReportOut)
async def run_scan(monitor: GeofenceMonitor = Depends(get_monitor)):
    """Run one geofence scan now. Waits for a scan already in progress."""
    report = await run_in_threadpool(monitor.scan_once)
    return report
