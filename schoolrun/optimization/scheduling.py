"""
Arrival time estimation along an ordered tour.
"""
import math
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from ..utils.geo_utils import distance_km
from .types import OptimizationConfig, SchoolPoint, Stop


def travel_minutes(prev: SchoolPoint, curr: SchoolPoint, config: OptimizationConfig) -> int:
    """Driving time between two schools at the assumed speed, plus the inter-stop buffer.

    Half minutes round up.
    """
    km = distance_km(prev.latitude, prev.longitude, curr.latitude, curr.longitude)
    return math.floor(km * 60 / config.assumed_speed_kmh + 0.5) + config.buffer_minutes


def dwell_minutes(school: SchoolPoint, config: OptimizationConfig) -> int:
    """Loading time at a stop: two minutes per student, clamped to the configured range."""
    return max(config.min_dwell_minutes, min(config.max_dwell_minutes, school.student_count * 2))


def schedule_tour(
    tour: Sequence[SchoolPoint],
    config: OptimizationConfig,
    service_date: Optional[date] = None,
) -> List[Stop]:
    """
    Assign an estimated arrival to every stop of the tour.

    The clock starts lead_time_minutes before the earliest dismissal. Each
    stop adds travel time from the previous one, is snapped forward so the
    driver never arrives more than early_arrival_minutes before that school's
    dismissal, and then adds dwell time. Arrivals are therefore
    non-decreasing along the tour.
    """
    if not tour:
        return []

    service_date = service_date or date.today()
    earliest = min(s.dismissal_time for s in tour)
    clock = datetime.combine(service_date, earliest) - timedelta(minutes=config.lead_time_minutes)

    stops: List[Stop] = []
    previous: Optional[SchoolPoint] = None
    for index, school in enumerate(tour, start=1):
        if previous is not None:
            clock += timedelta(minutes=travel_minutes(previous, school, config))

        floor = datetime.combine(service_date, school.dismissal_time) - timedelta(
            minutes=config.early_arrival_minutes
        )
        if clock < floor:
            clock = floor

        dwell = dwell_minutes(school, config)
        stops.append(Stop(
            school=school,
            order_index=index,
            estimated_arrival=clock,
            alert_threshold_minutes=config.alert_threshold_minutes,
            dwell_minutes=dwell,
        ))

        clock += timedelta(minutes=dwell)
        previous = school

    return stops
