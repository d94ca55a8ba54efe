"""
End-to-end route construction: validate -> cluster -> tour -> schedule -> evaluate.
"""
from datetime import date
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from ..config.logging import get_logger, log_performance
from ..core.exceptions import InsufficientDriversError
from ..utils.date_utils import parse_time_of_day
from ..utils.geo_utils import is_valid_coordinate
from .clustering import cluster_schools
from .metrics import evaluate_route
from .scheduling import schedule_tour
from .tour import build_tour
from .types import OptimizationConfig, OptimizationPlan, PlannedRoute, SchoolPoint

logger = get_logger(__name__)


def prepare_schools(records: Iterable[Any]) -> Tuple[List[SchoolPoint], List[str], List[int]]:
    """
    Convert directory records into SchoolPoints.

    Records need id, latitude, longitude, dismissal_time and student_count
    attributes (name is optional). Records with unusable coordinates, no
    riders or an unreadable dismissal time are excluded with a warning.
    Returns (schools, warnings, excluded_ids).
    """
    schools: List[SchoolPoint] = []
    warnings: List[str] = []
    excluded: List[int] = []

    for record in records:
        name = getattr(record, "name", None) or f"School {record.id}"
        if not is_valid_coordinate(record.latitude, record.longitude):
            warnings.append(f"{name} excluded: missing or invalid coordinates")
            excluded.append(record.id)
            continue
        if record.student_count is None or record.student_count <= 0:
            warnings.append(f"{name} excluded: no students to pick up")
            excluded.append(record.id)
            continue
        try:
            dismissal = parse_time_of_day(record.dismissal_time)
        except (TypeError, ValueError):
            warnings.append(f"{name} excluded: invalid dismissal time {record.dismissal_time!r}")
            excluded.append(record.id)
            continue

        schools.append(SchoolPoint(
            id=record.id,
            name=name,
            latitude=float(record.latitude),
            longitude=float(record.longitude),
            dismissal_time=dismissal.replace(tzinfo=None),
            student_count=int(record.student_count),
        ))

    return schools, warnings, excluded


@log_performance("schoolrun.optimization")
def plan_routes(
    records: Iterable[Any],
    config: OptimizationConfig,
    service_date: Optional[date] = None,
    driver_ids: Optional[Sequence[int]] = None,
) -> OptimizationPlan:
    """
    Build a complete route plan.

    Overflow clusters (more clusters than drivers) and schools larger than a
    vehicle are kept in the plan but reported in plan.errors so nothing is
    silently dropped.
    """
    config.validate()
    if driver_ids is not None and len(driver_ids) < config.driver_count:
        raise InsufficientDriversError(len(driver_ids), config.driver_count)

    schools, warnings, excluded = prepare_schools(records)
    if not schools:
        if excluded:
            warnings.append("No schools with valid coordinates and students found")
        return OptimizationPlan(warnings=tuple(warnings), excluded_school_ids=tuple(excluded))

    clusters = cluster_schools(schools, config)

    routes: List[PlannedRoute] = []
    errors: List[str] = []
    free_drivers = iter(driver_ids or ())
    for index, cluster in enumerate(clusters):
        oversized = cluster.load > config.vehicle_capacity
        stops = schedule_tour(build_tour(cluster.schools), config, service_date)
        metrics = evaluate_route(stops, config)

        overflow = cluster.overflow and not oversized
        driver_id = None
        if not (overflow or oversized):
            driver_id = next(free_drivers, None)

        route = PlannedRoute(
            route_number=index + 1,
            stops=tuple(stops),
            metrics=metrics,
            driver_id=driver_id,
            overflow=overflow,
            oversized=oversized,
        )
        routes.append(route)

        if oversized:
            school = cluster.schools[0]
            errors.append(
                f"{school.label} has {school.student_count} students, "
                f"more than vehicle capacity {config.vehicle_capacity}"
            )
        elif cluster.overflow:
            names = ", ".join(s.label for s in cluster.schools)
            errors.append(
                f"Route {index + 1} ({names}) needs an additional driver or more vehicle capacity"
            )

    plan = OptimizationPlan(
        routes=tuple(routes),
        warnings=tuple(warnings),
        errors=tuple(errors),
        excluded_school_ids=tuple(excluded),
    )
    logger.info(
        f"Planned {len(routes)} routes for {plan.total_students} students "
        f"across {len(schools)} schools ({len(errors)} errors, {plan.warning_count} warnings)"
    )
    return plan
