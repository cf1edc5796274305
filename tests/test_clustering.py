"""
Tests for cluster aggregation.
"""

import pytest

from nuisance_watch.clustering import (
    CLUSTER_ID_MAX_LENGTH,
    ClusterAggregator,
    aggregate,
    cluster_id,
    normalize_location_key,
)
from nuisance_watch.models import BatchStats, RecordError, Trend


@pytest.fixture
def aggregator(categories, zip_index):
    return ClusterAggregator(categories, zip_index)


class TestClusterId:

    def test_format(self):
        assert cluster_id("80 wooster st", "Noise - Commercial") == "cluster-noise---commercial-80-wooster-st"

    def test_deterministic(self):
        assert cluster_id("a b", "Rodent") == cluster_id("a b", "Rodent")

    def test_long_ids_capped_and_distinct(self):
        first = cluster_id("x" * 80 + " one", "Noise - Residential")
        second = cluster_id("x" * 80 + " two", "Noise - Residential")
        assert len(first) == CLUSTER_ID_MAX_LENGTH
        assert len(second) == CLUSTER_ID_MAX_LENGTH
        assert first != second

    def test_normalize_location_key(self):
        assert normalize_location_key("  100 Block of   Bleecker Street ") == "100 block of bleecker street"


class TestAggregate:
    """Tests for grouping records into clusters."""

    def test_same_block_groups_together(self, aggregator, make_record):
        records = [
            make_record(address="123 BLEECKER STREET"),
            make_record(address="145 BLEECKER STREET"),
            make_record(address="199 BLEECKER STREET"),
        ]
        clusters = aggregator.aggregate(records)
        assert len(clusters) == 1
        assert clusters[0].count == 3
        assert clusters[0].display_location == "100 Block of Bleecker Street"
        assert clusters[0].neighborhood == "Greenwich Village"

    def test_different_blocks_split(self, aggregator, make_record):
        records = [make_record(address="123 BLEECKER STREET"), make_record(address="245 BLEECKER STREET")]
        assert len(aggregator.aggregate(records)) == 2

    def test_commercial_keys_on_exact_address(self, aggregator, make_record):
        records = [
            make_record(type_label="Noise - Commercial", address="80 WOOSTER STREET", street="WOOSTER STREET"),
            make_record(type_label="Noise - Commercial", address="82 WOOSTER STREET", street="WOOSTER STREET"),
        ]
        clusters = aggregator.aggregate(records)
        assert [c.display_location for c in clusters] == ["80 WOOSTER STREET", "82 WOOSTER STREET"]
        assert all(c.is_commercial for c in clusters)

    def test_category_splits_same_location(self, aggregator, make_record):
        records = [make_record(type_label="Rat Sighting"), make_record(type_label="Noise")]
        clusters = aggregator.aggregate(records)
        assert sorted(c.category for c in clusters) == ["Noise - Residential", "Rodent"]

    def test_first_seen_order_and_defaults(self, aggregator, make_record):
        records = [
            make_record(address="300 MOTT STREET", street="MOTT STREET", zip_code="10012"),
            make_record(address="123 BLEECKER STREET"),
        ]
        clusters = aggregator.aggregate(records)
        assert clusters[0].display_location == "300 Block of Mott Street"
        assert all(c.trend == Trend.NORMAL for c in clusters)
        assert all(c.baseline_count is None and c.percent_change is None for c in clusters)

    def test_count_matches_members(self, aggregator, make_record):
        records = [make_record() for _ in range(4)]
        cluster = aggregator.aggregate(records)[0]
        assert cluster.count == len(cluster.members) == 4
        assert [r.id for r in cluster.members] == [r.id for r in records]

    def test_empty_input(self, aggregator):
        assert aggregator.aggregate([]) == []

    def test_functional_form(self, categories, zip_index, make_record):
        clusters = aggregate([make_record()], categories, zip_index)
        assert len(clusters) == 1


class TestDrops:
    """Filtered records are counted, never raised."""

    def test_drop_reasons_counted(self, aggregator, make_record):
        stats = BatchStats()
        records = [
            make_record(),
            make_record(type_label="Blocked Driveway"),
            make_record(zip_code="90210"),
            make_record(address="", street="", cross_streets=None),
        ]
        clusters = aggregator.aggregate(records, stats)
        assert len(clusters) == 1
        assert stats.records_scanned == 4
        assert stats.records_clustered == 1
        assert stats.dropped_unclassified == 1
        assert stats.dropped_unknown_zip == 1
        assert stats.dropped_unlocatable == 1
        assert stats.records_dropped == 3
        assert stats.clusters_detected == 1

    def test_non_record_raises(self, aggregator, make_record):
        with pytest.raises(RecordError):
            aggregator.aggregate([make_record(), {"unique_key": "1"}])
