"""
Capacity-aware clustering of schools onto vehicles.

Best-fit-decreasing bin packing: schools are placed largest-first into the
cluster that would be left fullest, with a small bonus for clusters whose
centroid is close to the school.
"""
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..config.logging import get_logger
from ..utils.geo_utils import distance_km
from .types import Cluster, OptimizationConfig, SchoolPoint

logger = get_logger(__name__)

PROXIMITY_WEIGHT = 10.0


def cluster_centroid(cluster: Cluster) -> Tuple[float, float]:
    """Unweighted mean of member coordinates."""
    coords = np.array([(s.latitude, s.longitude) for s in cluster.schools], dtype=float)
    lat, lon = coords.mean(axis=0)
    return float(lat), float(lon)


def placement_score(cluster: Cluster, school: SchoolPoint, vehicle_capacity: int) -> Optional[float]:
    """
    Score for adding school to cluster, or None when it does not fit.

    Higher is better: leftover seats after placement are rewarded (fuller
    clusters win ties on capacity) and non-empty clusters get
    10 / (1 + km to centroid).
    """
    new_load = cluster.load + school.student_count
    if new_load > vehicle_capacity:
        return None

    score = float(vehicle_capacity - new_load)
    if len(cluster) > 0:
        center_lat, center_lon = cluster_centroid(cluster)
        proximity = 1.0 / (1.0 + distance_km(school.latitude, school.longitude, center_lat, center_lon))
        score += proximity * PROXIMITY_WEIGHT
    return score


def cluster_schools(schools: Sequence[SchoolPoint], config: OptimizationConfig) -> List[Cluster]:
    """
    Partition schools into clusters whose load never exceeds vehicle capacity.

    Starts with driver_count empty clusters. A school that fits nowhere opens
    a new cluster flagged as overflow; callers must surface those instead of
    dropping them. Empty clusters are removed from the result. Ties on score
    go to the lowest cluster index.
    """
    config.validate()
    if not schools:
        return []

    ordered = sorted(schools, key=lambda s: (-s.student_count, s.id))
    clusters: List[Cluster] = [Cluster() for _ in range(config.driver_count)]

    for school in ordered:
        best_index = -1
        best_score = float("-inf")

        for index, cluster in enumerate(clusters):
            score = placement_score(cluster, school, config.vehicle_capacity)
            if score is not None and score > best_score:
                best_score = score
                best_index = index

        if best_index >= 0:
            clusters[best_index] = clusters[best_index].with_school(school)
        else:
            logger.warning(
                f"School {school.id} ({school.student_count} students) does not fit any vehicle; "
                f"opening overflow cluster {len(clusters) + 1}"
            )
            clusters.append(Cluster(schools=(school,), overflow=True))

    result = [c for c in clusters if len(c) > 0]
    logger.debug(f"Clustered {len(schools)} schools into {len(result)} clusters")
    return result
