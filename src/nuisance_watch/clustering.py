"""
Group classified, anonymized complaints into clusters.

One linear pass over the records: classify, resolve the neighborhood,
anonymize the location, then fold the record into the cluster for its
(location key, category). Commercial categories key on the exact address,
so complaints aggregate per venue; residential categories key on the
anonymized block string, so neighbouring addresses on one block aggregate
together. Timing plays no part here.
"""

import hashlib
import re
from typing import Dict, Iterable, List, Optional

from nuisance_watch.anonymize import anonymize_address
from nuisance_watch.categories import CategoryConfig, CategoryRegistry
from nuisance_watch.models import BatchStats, ComplaintCluster, RawEventRecord, RecordError
from nuisance_watch.neighborhoods import Neighborhood, NeighborhoodZipIndex

CLUSTER_ID_MAX_LENGTH = 60
_DIGEST_LENGTH = 8

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_ALPHA = re.compile(r"[^a-z]")
_WHITESPACE = re.compile(r"\s+")


def normalize_location_key(location: str) -> str:
    return _WHITESPACE.sub(" ", location.strip().lower())


def cluster_id(location_key: str, category: str) -> str:
    """
    Deterministic id from location key and category.

    "cluster-noise---commercial-80-wooster-st". Ids over 60 characters are
    cut and suffixed with a digest of the full id, so two long locations
    sharing a prefix still get distinct ids.
    """
    clean_location = _NON_ALNUM.sub("-", location_key.lower())
    clean_category = _NON_ALPHA.sub("-", category.lower())
    full_id = f"cluster-{clean_category}-{clean_location}"
    if len(full_id) <= CLUSTER_ID_MAX_LENGTH:
        return full_id

    digest = hashlib.sha256(full_id.encode("utf-8")).hexdigest()[:_DIGEST_LENGTH]
    head = full_id[:CLUSTER_ID_MAX_LENGTH - _DIGEST_LENGTH - 1]
    return f"{head}-{digest}"


class ClusterAggregator:
    """
    Builds clusters from raw records against fixed registries.

    The aggregator holds no per-run state: each aggregate() call works on its
    own cluster map, so one instance can serve several batches.
    """

    def __init__(self, categories: CategoryRegistry, zip_index: NeighborhoodZipIndex):
        self.categories = categories
        self.zip_index = zip_index

    def locate(self, record: RawEventRecord, category: CategoryConfig) -> tuple[str, str]:
        """
        Return (display_location, location_key) for a record.

        Both are empty when the record cannot be placed.
        """
        display = anonymize_address(
            record.address,
            record.street,
            record.cross_streets,
            is_commercial=category.is_commercial,
        )
        if not display:
            return "", ""

        if category.is_commercial and record.address.strip():
            return display, normalize_location_key(record.address)
        return display, normalize_location_key(display)

    def aggregate(
        self,
        records: Iterable[RawEventRecord],
        stats: Optional[BatchStats] = None,
    ) -> List[ComplaintCluster]:
        """
        Cluster the records.

        Args:
            records: Complaints for one batch window
            stats: Optional counters updated with scanned / dropped / clustered totals

        Returns:
            Clusters in first-seen order (unfiltered, unranked, trend=normal)

        Raises:
            RecordError: If an element is not a RawEventRecord
        """
        if stats is None:
            stats = BatchStats()

        clusters: Dict[str, ComplaintCluster] = {}

        for record in records:
            if not isinstance(record, RawEventRecord):
                raise RecordError(f"Expected RawEventRecord, got {type(record).__name__}")
            stats.records_scanned += 1

            category = self.categories.classify(record.type_label)
            if category is None:
                stats.dropped_unclassified += 1
                continue

            hood = self.zip_index.resolve(record.zip_code)
            if hood is None:
                stats.dropped_unknown_zip += 1
                continue

            display, location_key = self.locate(record, category)
            if not display:
                stats.dropped_unlocatable += 1
                continue

            key = cluster_id(location_key, category.name)
            cluster = clusters.get(key)
            if cluster is None:
                cluster = self._new_cluster(key, display, record, category, hood)
                clusters[key] = cluster
            cluster.add(record)
            stats.records_clustered += 1

        stats.clusters_detected += len(clusters)
        return list(clusters.values())

    @staticmethod
    def _new_cluster(
        key: str,
        display: str,
        record: RawEventRecord,
        category: CategoryConfig,
        hood: Neighborhood,
    ) -> ComplaintCluster:
        return ComplaintCluster(
            id=key,
            display_location=display,
            category=category.name,
            severity=category.severity,
            neighborhood=hood.key,
            neighborhood_id=hood.id,
            is_commercial=category.is_commercial,
            location=record.address,
            street=record.street,
        )


def aggregate(
    records: Iterable[RawEventRecord],
    categories: CategoryRegistry,
    zip_index: NeighborhoodZipIndex,
    stats: Optional[BatchStats] = None,
) -> List[ComplaintCluster]:
    """Functional form of ClusterAggregator.aggregate."""
    return ClusterAggregator(categories, zip_index).aggregate(records, stats)
