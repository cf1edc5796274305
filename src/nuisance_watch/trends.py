"""
Trend classification against a historical baseline.

With a positive baseline:
    spike     count >= baseline * spike_multiplier
    elevated  count >  baseline
    normal    otherwise

Without one (new cluster, or no history available) the label comes from
absolute volume: spike at twice the significance threshold, elevated below
that. A first-time cluster is never labelled normal.
"""

import math
from typing import List, Mapping, Optional

from nuisance_watch.models import ComplaintCluster, Trend

NUISANCE_THRESHOLD = 5
SPIKE_MULTIPLIER = 2


def round_half_up(value: float) -> int:
    """Round .5 toward +inf (2.5 -> 3, -2.5 -> -2); round() would give 2 / -2."""
    return int(math.floor(value + 0.5))


def percent_change(count: int, baseline: float) -> int:
    return round_half_up((count - baseline) / baseline * 100)


def classify_trend(
    cluster: ComplaintCluster,
    baseline: Optional[float] = None,
    threshold: int = NUISANCE_THRESHOLD,
    spike_multiplier: float = SPIKE_MULTIPLIER,
) -> ComplaintCluster:
    """Annotate one cluster in place and return it."""
    count = cluster.count

    if baseline is not None and baseline > 0:
        cluster.baseline_count = baseline
        cluster.percent_change = percent_change(count, baseline)
        if count >= baseline * spike_multiplier:
            cluster.trend = Trend.SPIKE
        elif count > baseline:
            cluster.trend = Trend.ELEVATED
        else:
            cluster.trend = Trend.NORMAL
        return cluster

    cluster.baseline_count = None
    cluster.percent_change = None
    cluster.trend = Trend.SPIKE if count >= threshold * 2 else Trend.ELEVATED
    return cluster


def classify_trends(
    clusters: List[ComplaintCluster],
    baseline: Optional[Mapping[str, float]] = None,
    threshold: int = NUISANCE_THRESHOLD,
    spike_multiplier: float = SPIKE_MULTIPLIER,
) -> List[ComplaintCluster]:
    """
    Set trend, baseline_count and percent_change on every cluster.

    Args:
        clusters: Significant clusters (mutated in place)
        baseline: Optional cluster id -> historical average count
        threshold: Significance threshold, used for the no-baseline fallback
        spike_multiplier: Baseline multiple that counts as a spike

    Returns:
        The same list, annotated
    """
    if spike_multiplier <= 1:
        raise ValueError(f"spike_multiplier must be > 1, got {spike_multiplier}")

    baseline = baseline or {}
    for cluster in clusters:
        classify_trend(cluster, baseline.get(cluster.id), threshold, spike_multiplier)
    return clusters
