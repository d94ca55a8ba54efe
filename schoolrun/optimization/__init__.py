"""
Pure route construction pipeline. No database access and no shared state:
every function takes explicit inputs and returns new immutable values.
"""
from .types import (
    Cluster,
    OptimizationConfig,
    OptimizationPlan,
    PlannedRoute,
    RouteMetrics,
    SchoolPoint,
    Stop,
)
from .clustering import cluster_schools
from .tour import build_tour
from .scheduling import schedule_tour
from .metrics import evaluate_route
from .pipeline import plan_routes, prepare_schools

__all__ = [
    "Cluster",
    "OptimizationConfig",
    "OptimizationPlan",
    "PlannedRoute",
    "RouteMetrics",
    "SchoolPoint",
    "Stop",
    "cluster_schools",
    "build_tour",
    "schedule_tour",
    "evaluate_route",
    "plan_routes",
    "prepare_schools",
]
