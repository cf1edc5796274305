"""
Batch orchestration for one Nuisance Watch window.

    records -> aggregate -> filter -> trends -> rank -> roundup decision

Synchronous and I/O-free: fetching records, reading baseline history and
writing results all happen in the scripts. The engine holds only the
read-only registries and parameters, so one instance can run any number of
batches, each with its own cluster map.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from nuisance_watch.categories import CategoryRegistry
from nuisance_watch.clustering import ClusterAggregator
from nuisance_watch.models import BatchStats, ComplaintCluster, ConfigurationError, RawEventRecord
from nuisance_watch.neighborhoods import NeighborhoodZipIndex
from nuisance_watch.ranking import filter_significant, rank_clusters
from nuisance_watch.roundup import ROUNDUP_MIN_CLUSTERS, RoundupDecision, decide_roundups
from nuisance_watch.selection import MAX_STORIES
from nuisance_watch.trends import NUISANCE_THRESHOLD, SPIKE_MULTIPLIER, classify_trends


@dataclass(frozen=True)
class NuisanceParams:
    """Tunable parameters, normally read from the `nuisance` block of params.yml."""
    threshold: int = NUISANCE_THRESHOLD
    spike_multiplier: float = SPIKE_MULTIPLIER
    window_days: int = 7
    max_stories: int = MAX_STORIES
    roundup_min_clusters: int = ROUNDUP_MIN_CLUSTERS
    baseline_lookback_runs: int = 4

    def __post_init__(self):
        if self.threshold < 1:
            raise ConfigurationError(f"threshold must be >= 1, got {self.threshold}")
        if self.spike_multiplier <= 1:
            raise ConfigurationError(f"spike_multiplier must be > 1, got {self.spike_multiplier}")
        if self.window_days < 1:
            raise ConfigurationError(f"window_days must be >= 1, got {self.window_days}")
        if self.max_stories < 0:
            raise ConfigurationError(f"max_stories must be >= 0, got {self.max_stories}")
        if self.roundup_min_clusters < 2:
            raise ConfigurationError(
                f"roundup_min_clusters must be >= 2, got {self.roundup_min_clusters}"
            )
        if self.baseline_lookback_runs < 1:
            raise ConfigurationError(
                f"baseline_lookback_runs must be >= 1, got {self.baseline_lookback_runs}"
            )

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "NuisanceParams":
        """
        Read the `nuisance` section of a params.yml dict; missing keys keep defaults.

        Raises:
            ConfigurationError: On unknown keys or out-of-range values
        """
        section = dict((config or {}).get("nuisance", {}) or {})
        baseline = dict(section.pop("baseline", {}) or {})
        unknown_baseline = set(baseline) - {"lookback_runs"}
        if unknown_baseline:
            raise ConfigurationError(f"Unknown nuisance.baseline parameters: {sorted(unknown_baseline)}")
        if "lookback_runs" in baseline:
            section["baseline_lookback_runs"] = baseline["lookback_runs"]

        known = set(cls.__dataclass_fields__)
        unknown = set(section) - known
        if unknown:
            raise ConfigurationError(f"Unknown nuisance parameters: {sorted(unknown)}")
        return cls(**section)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BatchResult:
    clusters: List[ComplaintCluster]
    decision: RoundupDecision
    stats: BatchStats = field(default_factory=BatchStats)


class NuisanceEngine:
    """
    Immutable context: category registry, zip index and parameters.

    Usage:
        engine = NuisanceEngine(CategoryRegistry(), NeighborhoodZipIndex())
        result = engine.run(records, baseline={"cluster-...": 2.0})
    """

    def __init__(
        self,
        categories: CategoryRegistry,
        zip_index: NeighborhoodZipIndex,
        params: Optional[NuisanceParams] = None,
    ):
        if categories is None or len(categories) == 0:
            raise ConfigurationError("Category registry is empty")
        if zip_index is None or len(zip_index) == 0:
            raise ConfigurationError("Neighborhood zip index is empty")

        self._categories = categories
        self._zip_index = zip_index
        self._params = params or NuisanceParams()
        self._aggregator = ClusterAggregator(categories, zip_index)

    @property
    def categories(self) -> CategoryRegistry:
        return self._categories

    @property
    def zip_index(self) -> NeighborhoodZipIndex:
        return self._zip_index

    @property
    def params(self) -> NuisanceParams:
        return self._params

    def run(
        self,
        records: Iterable[RawEventRecord],
        baseline: Optional[Mapping[str, float]] = None,
        logger=None,
    ) -> BatchResult:
        """
        Cluster, filter, classify, rank and partition one window of records.

        Args:
            records: Complaints for the window
            baseline: Optional cluster id -> historical average count
            logger: Optional JSONLLogger

        Returns:
            BatchResult with ranked clusters, roundup decision and stats

        Raises:
            RecordError: On a structurally malformed record (nothing is returned)
        """
        params = self._params
        stats = BatchStats()
        stats.seed(self._categories.names)

        clusters = self._aggregator.aggregate(records, stats)
        significant = filter_significant(clusters, params.threshold)
        stats.clusters_significant = len(significant)

        classify_trends(
            significant,
            baseline=baseline,
            threshold=params.threshold,
            spike_multiplier=params.spike_multiplier,
        )
        ranked = rank_clusters(significant)
        decision = decide_roundups(ranked, params.roundup_min_clusters)
        stats.tally(ranked)

        log_batch_summary(stats, logger)
        return BatchResult(clusters=ranked, decision=decision, stats=stats)


def run_batch(
    records: Iterable[RawEventRecord],
    categories: CategoryRegistry,
    zip_index: NeighborhoodZipIndex,
    baseline: Optional[Mapping[str, float]] = None,
    params: Optional[NuisanceParams] = None,
    logger=None,
) -> BatchResult:
    """Functional form of NuisanceEngine.run."""
    return NuisanceEngine(categories, zip_index, params).run(records, baseline, logger)


def log_batch_summary(stats: BatchStats, logger=None) -> None:
    """
    Log scanned vs clustered counts.

    Args:
        stats: Counters from a finished batch
        logger: Optional JSONLLogger (does nothing if None)
    """
    if logger is None:
        return

    logger.info(
        f"Scanned {stats.records_scanned:,} complaints, clustered {stats.records_clustered:,} "
        f"(dropped: {stats.dropped_unclassified} unclassified, "
        f"{stats.dropped_unknown_zip} unknown zip, {stats.dropped_unlocatable} unlocatable)"
    )
    logger.info(
        f"Clusters: {stats.clusters_detected:,} detected, "
        f"{stats.clusters_significant:,} above threshold"
    )
    logger.log_batch_stats(stats.as_dict())
