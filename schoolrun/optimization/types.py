"""
Immutable value types shared by the route construction pipeline.

Every stage takes these as input and returns new values; nothing here is
mutated after construction.
"""
from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Tuple

from ..core.exceptions import InvalidConfigurationError


@dataclass(frozen=True)
class SchoolPoint:
    """A school as seen by the optimizer."""
    id: int
    latitude: float
    longitude: float
    dismissal_time: time
    student_count: int
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or f"School {self.id}"


@dataclass(frozen=True)
class OptimizationConfig:
    """Parameters for one optimization run."""
    driver_count: int
    vehicle_capacity: int
    max_route_time_minutes: int = 120
    buffer_minutes: int = 10
    assumed_speed_kmh: float = 32.0
    min_dwell_minutes: int = 5
    max_dwell_minutes: int = 15
    alert_threshold_minutes: int = 10
    lead_time_minutes: int = 15  # clock starts this long before the earliest dismissal
    early_arrival_minutes: int = 10  # never arrive earlier than dismissal minus this
    high_utilization_percent: float = 90.0
    long_route_distance_km: float = 30.0
    tight_timing_minutes: int = 10

    def validate(self) -> "OptimizationConfig":
        """Reject configurations that cannot produce a plan. Returns self for chaining."""
        if self.driver_count < 1:
            raise InvalidConfigurationError("driver_count", self.driver_count, "at least one driver is required")
        if self.vehicle_capacity < 1:
            raise InvalidConfigurationError("vehicle_capacity", self.vehicle_capacity, "capacity must be at least 1 seat")
        if self.assumed_speed_kmh <= 0:
            raise InvalidConfigurationError("assumed_speed_kmh", self.assumed_speed_kmh, "speed must be positive")
        if self.buffer_minutes < 0:
            raise InvalidConfigurationError("buffer_minutes", self.buffer_minutes, "buffer cannot be negative")
        if self.min_dwell_minutes < 0 or self.min_dwell_minutes > self.max_dwell_minutes:
            raise InvalidConfigurationError(
                "min_dwell_minutes", self.min_dwell_minutes,
                f"must be between 0 and max_dwell_minutes ({self.max_dwell_minutes})"
            )
        if self.alert_threshold_minutes < 0:
            raise InvalidConfigurationError(
                "alert_threshold_minutes", self.alert_threshold_minutes, "threshold cannot be negative"
            )
        if self.max_route_time_minutes < 1:
            raise InvalidConfigurationError(
                "max_route_time_minutes", self.max_route_time_minutes, "must be at least 1 minute"
            )
        return self


@dataclass(frozen=True)
class Cluster:
    """Schools grouped onto one vehicle."""
    schools: Tuple[SchoolPoint, ...] = ()
    overflow: bool = False  # opened because no existing cluster had room

    @property
    def load(self) -> int:
        return sum(s.student_count for s in self.schools)

    def __len__(self) -> int:
        return len(self.schools)

    def with_school(self, school: SchoolPoint) -> "Cluster":
        return Cluster(schools=self.schools + (school,), overflow=self.overflow)


@dataclass(frozen=True)
class Stop:
    """A school placed into a tour with its schedule."""
    school: SchoolPoint
    order_index: int  # 1-based
    estimated_arrival: datetime
    alert_threshold_minutes: int
    dwell_minutes: int

    @property
    def estimated_arrival_time(self) -> time:
        return self.estimated_arrival.time()


@dataclass(frozen=True)
class RouteMetrics:
    total_distance_km: float
    total_time_minutes: int
    total_students: int
    seat_utilization_percent: float
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PlannedRoute:
    """One driver's scheduled route inside a plan."""
    route_number: int
    stops: Tuple[Stop, ...]
    metrics: RouteMetrics
    driver_id: Optional[int] = None
    overflow: bool = False
    oversized: bool = False  # a single school that does not fit any vehicle

    @property
    def school_ids(self) -> Tuple[int, ...]:
        return tuple(stop.school.id for stop in self.stops)

    @property
    def is_assignable(self) -> bool:
        return not (self.overflow or self.oversized)


@dataclass(frozen=True)
class OptimizationPlan:
    routes: Tuple[PlannedRoute, ...] = ()
    warnings: Tuple[str, ...] = ()  # advisory, never block persistence
    errors: Tuple[str, ...] = ()  # configuration problems, block persistence
    excluded_school_ids: Tuple[int, ...] = ()

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def assignable_routes(self) -> Tuple[PlannedRoute, ...]:
        return tuple(r for r in self.routes if r.is_assignable)

    @property
    def unassigned_school_ids(self) -> Tuple[int, ...]:
        return tuple(
            school_id
            for route in self.routes if not route.is_assignable
            for school_id in route.school_ids
        )

    @property
    def total_students(self) -> int:
        return sum(r.metrics.total_students for r in self.routes)

    @property
    def total_distance_km(self) -> float:
        return sum(r.metrics.total_distance_km for r in self.routes)

    @property
    def average_utilization_percent(self) -> float:
        if not self.routes:
            return 0.0
        return sum(r.metrics.seat_utilization_percent for r in self.routes) / len(self.routes)

    @property
    def warning_count(self) -> int:
        return len(self.warnings) + sum(len(r.metrics.warnings) for r in self.routes)
