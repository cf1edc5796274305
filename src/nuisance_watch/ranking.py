"""
Significance filtering and ranking of clusters.
"""

from typing import List

from nuisance_watch.models import ComplaintCluster
from nuisance_watch.trends import NUISANCE_THRESHOLD


def filter_significant(
    clusters: List[ComplaintCluster],
    threshold: int = NUISANCE_THRESHOLD,
) -> List[ComplaintCluster]:
    """
    Keep clusters with at least `threshold` complaints.

    Must run after aggregation has seen every record, so counts are final.

    Raises:
        ValueError: If threshold < 1
    """
    if threshold < 1:
        raise ValueError(f"threshold must be >= 1, got {threshold}")
    return [c for c in clusters if c.count >= threshold]


def rank_key(cluster: ComplaintCluster):
    return (cluster.severity.rank, -cluster.count, cluster.id)


def rank_clusters(clusters: List[ComplaintCluster]) -> List[ComplaintCluster]:
    """
    Order by severity (High first), then count descending.

    Remaining ties break on cluster id so output order never depends on
    aggregation order.
    """
    return sorted(clusters, key=rank_key)
