"""
Visiting order inside one cluster.

Nearest-neighbor heuristic seeded by the earliest dismissal. This is a known
approximation: no 2-opt pass or exact TSP solve is attempted, so tours can be
longer than optimal.
"""
from typing import List, Sequence

from ..utils.geo_utils import distance_km
from .types import SchoolPoint


def build_tour(schools: Sequence[SchoolPoint]) -> List[SchoolPoint]:
    """
    Order schools for one vehicle.

    The tour starts at the earliest-dismissal school (lowest id on equal
    times) and repeatedly moves to the closest unvisited school. Equal
    distances resolve to the lowest school id so the output is reproducible.
    """
    if len(schools) <= 1:
        return list(schools)

    unvisited = sorted(schools, key=lambda s: (s.dismissal_time, s.id))
    tour = [unvisited.pop(0)]

    while unvisited:
        current = tour[-1]
        nearest = min(
            unvisited,
            key=lambda s: (distance_km(current.latitude, current.longitude, s.latitude, s.longitude), s.id)
        )
        tour.append(nearest)
        unvisited.remove(nearest)

    return tour
