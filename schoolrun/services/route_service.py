from datetime import date
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session

from ..config.logging import get_logger
from ..config.settings import Settings, get_settings
from ..core.exceptions import BadRequestError, CapacityExceededError, NotFoundError
from ..models.route import Route
from ..optimization import OptimizationConfig, OptimizationPlan, PlannedRoute, plan_routes
from ..repositories.route_repo import route_repository
from ..repositories.school_repo import school_repository
from ..utils.date_utils import local_today

logger = get_logger(__name__)


class RouteService:
    """Builds route plans from the school directory and persists them."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def build_config(
        self,
        driver_count: Optional[int] = None,
        vehicle_capacity: Optional[int] = None,
        max_route_time_minutes: Optional[int] = None,
        buffer_minutes: Optional[int] = None,
    ) -> OptimizationConfig:
        """Request parameters with settings as defaults"""
        s = self.settings

        def pick(value, default):
            return default if value is None else value

        return OptimizationConfig(
            driver_count=pick(driver_count, s.DEFAULT_DRIVER_COUNT),
            vehicle_capacity=pick(vehicle_capacity, s.DEFAULT_VEHICLE_CAPACITY),
            max_route_time_minutes=pick(max_route_time_minutes, s.DEFAULT_MAX_ROUTE_TIME_MINUTES),
            buffer_minutes=pick(buffer_minutes, s.DEFAULT_BUFFER_MINUTES),
            assumed_speed_kmh=s.ASSUMED_SPEED_KMH,
            min_dwell_minutes=s.MIN_DWELL_MINUTES,
            max_dwell_minutes=s.MAX_DWELL_MINUTES,
            alert_threshold_minutes=s.ALERT_THRESHOLD_MINUTES,
            long_route_distance_km=s.LONG_ROUTE_DISTANCE_KM,
        ).validate()

    def load_schools(self, school_ids: Optional[Sequence[int]] = None) -> List[Any]:
        """Active schools from the directory, all of them or the requested ids"""
        if school_ids is not None:
            missing = school_repository.get_missing_ids(self.db, school_ids)
            if missing:
                raise NotFoundError("School", ", ".join(str(i) for i in missing))
        return school_repository.get_active(self.db, school_ids)

    def preview(
        self,
        config: OptimizationConfig,
        *,
        school_ids: Optional[Sequence[int]] = None,
        schools: Optional[Iterable[Any]] = None,
        service_date: Optional[date] = None,
        driver_ids: Optional[Sequence[int]] = None,
    ) -> OptimizationPlan:
        """Compute a plan without saving anything. Inline schools replace the directory."""
        records = list(schools) if schools is not None else self.load_schools(school_ids)
        service_date = service_date or local_today(self.settings.TIMEZONE)
        return plan_routes(records, config, service_date=service_date, driver_ids=driver_ids)

    def apply(
        self,
        config: OptimizationConfig,
        *,
        school_ids: Optional[Sequence[int]] = None,
        driver_ids: Optional[Sequence[int]] = None,
    ) -> Tuple[OptimizationPlan, List[Route]]:
        """Optimize the directory and replace the active routes with the result."""
        plan = self.preview(config, school_ids=school_ids, driver_ids=driver_ids)
        if plan.has_errors:
            raise CapacityExceededError(list(plan.errors))
        if not plan.routes:
            raise BadRequestError("No schools with valid coordinates and students to route")

        routes = route_repository.replace_active_routes(
            self.db, [self._route_values(route) for route in plan.routes]
        )
        logger.info(f"Applied {len(routes)} routes covering {plan.total_students} students")
        return plan, routes

    def get_active_routes(self) -> List[Route]:
        return route_repository.get_active_routes(self.db)

    def get_route(self, route_id: int) -> Route:
        route = route_repository.get_with_stops(self.db, route_id)
        if not route:
            raise NotFoundError("Route", route_id)
        return route

    def _route_values(self, route: PlannedRoute) -> dict:
        metrics = route.metrics
        return {
            'name': f"Route {route.route_number}",
            'driver_id': route.driver_id,
            'total_distance_km': round(metrics.total_distance_km, 2),
            'total_time_minutes': metrics.total_time_minutes,
            'seat_utilization_percent': round(metrics.seat_utilization_percent, 1),
            'stops': [
                {
                    'school_id': stop.school.id,
                    'order_index': stop.order_index,
                    'estimated_arrival_time': stop.estimated_arrival_time,
                    'alert_threshold_minutes': stop.alert_threshold_minutes,
                }
                for stop in route.stops
            ],
        }
