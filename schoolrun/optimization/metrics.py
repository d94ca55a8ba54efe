"""
Route metrics and advisory warnings for a scheduled tour.
"""
from datetime import datetime
from typing import List, Sequence

from ..utils.date_utils import minutes_between
from ..utils.geo_utils import path_length_km
from .types import OptimizationConfig, RouteMetrics, Stop


def evaluate_route(stops: Sequence[Stop], config: OptimizationConfig) -> RouteMetrics:
    """
    Aggregate distance, duration and seat utilization for one route.

    Warnings are plain strings for display; they never block persisting the
    route.
    """
    config.validate()
    total_students = sum(stop.school.student_count for stop in stops)
    utilization = total_students / config.vehicle_capacity * 100

    if not stops:
        return RouteMetrics(
            total_distance_km=0.0,
            total_time_minutes=0,
            total_students=0,
            seat_utilization_percent=0.0,
        )

    total_distance = path_length_km((s.school.latitude, s.school.longitude) for s in stops)
    total_time = int(round(minutes_between(stops[0].estimated_arrival, stops[-1].estimated_arrival)))

    warnings: List[str] = []
    if utilization > config.high_utilization_percent:
        warnings.append(
            f"High capacity utilization ({utilization:.0f}%) - consider reducing students"
        )
    if total_time > config.max_route_time_minutes:
        warnings.append(
            f"Route exceeds maximum time ({total_time} min > {config.max_route_time_minutes} min)"
        )
    if total_distance > config.long_route_distance_km:
        warnings.append(
            f"Long route distance ({total_distance:.1f} km) - fuel and driver fatigue concerns"
        )

    for prev, curr in zip(stops, stops[1:]):
        prev_dismissal = datetime.combine(prev.estimated_arrival.date(), prev.school.dismissal_time)
        gap = minutes_between(prev_dismissal, curr.estimated_arrival)
        if gap < config.tight_timing_minutes:
            warnings.append(
                f"Tight timing between {prev.school.label} and {curr.school.label} ({gap:.0f} min gap)"
            )

    return RouteMetrics(
        total_distance_km=round(total_distance, 2),
        total_time_minutes=total_time,
        total_students=total_students,
        seat_utilization_percent=round(utilization, 1),
        warnings=tuple(warnings),
    )
