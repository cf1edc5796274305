"""
Decide between per-cluster stories and neighborhood roundups.

A neighborhood with two or more qualifying clusters is folded into one
roundup; a neighborhood with a single cluster keeps individual treatment.
Pure partitioning, no text generation.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from nuisance_watch.models import ComplaintCluster, Severity, Trend

ROUNDUP_MIN_CLUSTERS = 2


@dataclass
class RoundupGroup:
    """Clusters in one neighborhood destined for a single consolidated story."""
    neighborhood_id: str
    neighborhood: str
    clusters: List[ComplaintCluster]

    @property
    def id(self) -> str:
        return f"roundup-{self.neighborhood_id}"

    @property
    def hotspot_count(self) -> int:
        return len(self.clusters)

    @property
    def total_complaints(self) -> int:
        return sum(c.count for c in self.clusters)

    @property
    def has_high_severity(self) -> bool:
        return any(c.severity == Severity.HIGH for c in self.clusters)

    @property
    def has_spike(self) -> bool:
        return any(c.trend == Trend.SPIKE for c in self.clusters)

    @property
    def severity(self) -> Severity:
        return Severity.HIGH if self.has_high_severity else Severity.MEDIUM

    @property
    def trend(self) -> Trend:
        return Trend.SPIKE if self.has_spike else Trend.ELEVATED

    def by_count(self) -> List[ComplaintCluster]:
        # stable: equal counts keep ranked order
        return sorted(self.clusters, key=lambda c: -c.count)

    @property
    def lead_category(self) -> str:
        return self.by_count()[0].category

    @property
    def headline(self) -> str:
        return (
            f"Noise Watch: {self.hotspot_count} hotspots, "
            f"{self.total_complaints} complaints across {self.neighborhood}"
        )

    def sample_descriptors(self, limit: int = 6, per_cluster: int = 3) -> List[str]:
        seen: List[str] = []
        for cluster in self.by_count():
            for label in cluster.sample_descriptors(per_cluster):
                if label not in seen:
                    seen.append(label)
        return seen[:limit]


@dataclass
class RoundupDecision:
    individual: List[ComplaintCluster] = field(default_factory=list)
    roundups: Dict[str, List[ComplaintCluster]] = field(default_factory=dict)

    def groups(self) -> Iterator[RoundupGroup]:
        for hood_id, clusters in self.roundups.items():
            yield RoundupGroup(
                neighborhood_id=hood_id,
                neighborhood=clusters[0].neighborhood,
                clusters=clusters,
            )


def decide_roundups(
    clusters: List[ComplaintCluster],
    min_clusters: int = ROUNDUP_MIN_CLUSTERS,
) -> RoundupDecision:
    """
    Partition ranked clusters by neighborhood.

    Args:
        clusters: Ranked, filtered, trend-classified clusters
        min_clusters: Clusters a neighborhood needs to get a roundup

    Returns:
        RoundupDecision; ranked order is kept inside each bucket and
        neighborhoods appear in order of their first cluster
    """
    if min_clusters < 2:
        raise ValueError(f"min_clusters must be >= 2, got {min_clusters}")

    by_hood: Dict[str, List[ComplaintCluster]] = {}
    for cluster in clusters:
        by_hood.setdefault(cluster.neighborhood_id, []).append(cluster)

    decision = RoundupDecision()
    for hood_id, members in by_hood.items():
        if len(members) >= min_clusters:
            decision.roundups[hood_id] = members
    for cluster in clusters:
        if cluster.neighborhood_id not in decision.roundups:
            decision.individual.append(cluster)
    return decision
