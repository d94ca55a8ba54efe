# schoolrun/api/v1/endpoints/routes.py
from typing import List
from fastapi import APIRouter, Depends

from ....core.dependencies import get_route_service
from ....schemas.route import (
    ApplyPlanRequest, ApplyPlanResponse, OptimizationPlanOut, OptimizationRequest, RouteOut
)
from ....services.route_service import RouteService

router = APIRouter()


def _config_from_request(service: RouteService, request: ApplyPlanRequest):
    return service.build_config(
        driver_count=request.driver_count,
        vehicle_capacity=request.vehicle_capacity,
        max_route_time_minutes=request.max_route_time_minutes,
        buffer_minutes=request.buffer_minutes,
    )


@router.post("/optimize", response_model=OptimizationPlanOut)
def optimize_routes(
    request: OptimizationRequest,
    service: RouteService = Depends(get_route_service)
):
    """Preview a route plan without saving it"""
    plan = service.preview(
        _config_from_request(service, request),
        school_ids=request.school_ids,
        schools=request.schools,
        service_date=request.service_date,
        driver_ids=request.driver_ids,
    )
    return OptimizationPlanOut.from_plan(plan)


@router.post("/apply", response_model=ApplyPlanResponse, status_code=201)
def apply_routes(
    request: ApplyPlanRequest,
    service: RouteService = Depends(get_route_service)
):
    """Optimize the school directory and replace the active routes"""
    plan, routes = service.apply(
        _config_from_request(service, request),
        school_ids=request.school_ids,
        driver_ids=request.driver_ids,
    )
    return ApplyPlanResponse(
        plan=OptimizationPlanOut.from_plan(plan),
        routes=[RouteOut.model_validate(r) for r in routes],
    )


@router.get("", response_model=List[RouteOut])
def list_active_routes(service: RouteService = Depends(get_route_service)):
    """Active routes with their stops"""
    return service.get_active_routes()


@router.get("/{route_id}", response_model=RouteOut)
def get_route(route_id: int, service: RouteService = Depends(get_route_service)):
    return service.get_route(route_id)
