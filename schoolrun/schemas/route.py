from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime, date, time

from ..optimization import OptimizationPlan, PlannedRoute


class SchoolInput(BaseModel):
    """Inline school for previewing a plan without touching the directory"""
    id: int
    name: Optional[str] = Field(None, max_length=255)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    dismissal_time: time
    student_count: int = 0


class ApplyPlanRequest(BaseModel):
    """Plan parameters for the school directory; inline schools are preview-only"""
    driver_count: Optional[int] = None
    vehicle_capacity: Optional[int] = None
    max_route_time_minutes: Optional[int] = None
    buffer_minutes: Optional[int] = None
    driver_ids: Optional[List[int]] = None
    school_ids: Optional[List[int]] = None

    model_config = ConfigDict(extra='forbid')

    @field_validator('driver_ids')
    @classmethod
    def unique_driver_ids(cls, v):
        if v is not None and len(set(v)) != len(v):
            raise ValueError('driver_ids must not contain duplicates')
        return v


class OptimizationRequest(ApplyPlanRequest):
    schools: Optional[List[SchoolInput]] = None
    service_date: Optional[date] = None


class StopPlan(BaseModel):
    order_index: int
    school_id: int
    school_name: str
    student_count: int
    dismissal_time: time
    estimated_arrival_time: time
    dwell_minutes: int
    alert_threshold_minutes: int


class RouteMetricsOut(BaseModel):
    total_distance_km: float
    total_time_minutes: int
    total_students: int
    seat_utilization_percent: float
    warnings: List[str] = []


class PlannedRouteOut(BaseModel):
    route_number: int
    driver_id: Optional[int] = None
    overflow: bool = False
    oversized: bool = False
    stops: List[StopPlan]
    metrics: RouteMetricsOut

    @classmethod
    def from_planned(cls, route: PlannedRoute) -> "PlannedRouteOut":
        m = route.metrics
        return cls(
            route_number=route.route_number,
            driver_id=route.driver_id,
            overflow=route.overflow,
            oversized=route.oversized,
            stops=[
                StopPlan(
                    order_index=stop.order_index,
                    school_id=stop.school.id,
                    school_name=stop.school.label,
                    student_count=stop.school.student_count,
                    dismissal_time=stop.school.dismissal_time,
                    estimated_arrival_time=stop.estimated_arrival_time,
                    dwell_minutes=stop.dwell_minutes,
                    alert_threshold_minutes=stop.alert_threshold_minutes,
                )
                for stop in route.stops
            ],
            metrics=RouteMetricsOut(
                total_distance_km=round(m.total_distance_km, 2),
                total_time_minutes=m.total_time_minutes,
                total_students=m.total_students,
                seat_utilization_percent=round(m.seat_utilization_percent, 1),
                warnings=list(m.warnings),
            ),
        )


class PlanSummary(BaseModel):
    total_routes: int
    total_students: int
    total_distance_km: float
    average_utilization_percent: float
    warning_count: int


class OptimizationPlanOut(BaseModel):
    routes: List[PlannedRouteOut]
    warnings: List[str] = []
    errors: List[str] = []
    excluded_school_ids: List[int] = []
    unassigned_school_ids: List[int] = []
    summary: PlanSummary

    @classmethod
    def from_plan(cls, plan: OptimizationPlan) -> "OptimizationPlanOut":
        return cls(
            routes=[PlannedRouteOut.from_planned(r) for r in plan.routes],
            warnings=list(plan.warnings),
            errors=list(plan.errors),
            excluded_school_ids=list(plan.excluded_school_ids),
            unassigned_school_ids=list(plan.unassigned_school_ids),
            summary=PlanSummary(
                total_routes=len(plan.routes),
                total_students=plan.total_students,
                total_distance_km=round(plan.total_distance_km, 2),
                average_utilization_percent=round(plan.average_utilization_percent, 1),
                warning_count=plan.warning_count,
            ),
        )


class RouteStopOut(BaseModel):
    id: int
    school_id: int
    order_index: int
    estimated_arrival_time: time
    alert_threshold_minutes: int

    model_config = ConfigDict(from_attributes=True)


class RouteOut(BaseModel):
    id: int
    name: str
    driver_id: Optional[int] = None
    is_active: bool
    total_distance_km: float
    total_time_minutes: int
    seat_utilization_percent: float
    total_students: int = 0
    created_at: Optional[datetime] = None
    stops: List[RouteStopOut] = []

    model_config = ConfigDict(from_attributes=True)


class ApplyPlanResponse(BaseModel):
    plan: OptimizationPlanOut
    routes: List[RouteOut]
