"""
Tests for trend classification.
"""

import pytest

from nuisance_watch.models import Trend
from nuisance_watch.trends import classify_trend, classify_trends, percent_change, round_half_up


class TestRounding:

    @pytest.mark.parametrize("value,expected", [(2.5, 3), (2.4, 2), (-2.5, -2), (20.000000000000004, 20)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_percent_change(self):
        assert percent_change(7, 2) == 250
        assert percent_change(6, 5) == 20
        assert percent_change(3, 4) == -25


class TestWithBaseline:

    def test_spike(self, make_cluster):
        cluster = classify_trend(make_cluster(n=7), baseline=2)
        assert cluster.trend == Trend.SPIKE
        assert cluster.baseline_count == 2
        assert cluster.percent_change == 250

    def test_spike_at_exact_multiple(self, make_cluster):
        assert classify_trend(make_cluster(n=8), baseline=4).trend == Trend.SPIKE

    def test_elevated(self, make_cluster):
        cluster = classify_trend(make_cluster(n=6), baseline=5)
        assert cluster.trend == Trend.ELEVATED
        assert cluster.percent_change == 20

    def test_normal(self, make_cluster):
        cluster = classify_trend(make_cluster(n=5), baseline=5)
        assert cluster.trend == Trend.NORMAL
        assert cluster.percent_change == 0

    def test_below_baseline_is_normal(self, make_cluster):
        cluster = classify_trend(make_cluster(n=5), baseline=8)
        assert cluster.trend == Trend.NORMAL
        assert cluster.percent_change < 0


class TestWithoutBaseline:
    """Volume fallback: new clusters are never normal."""

    def test_high_volume_spike(self, make_cluster):
        cluster = classify_trend(make_cluster(n=12), baseline=None, threshold=5)
        assert cluster.trend == Trend.SPIKE
        assert cluster.baseline_count is None
        assert cluster.percent_change is None

    def test_low_volume_elevated(self, make_cluster):
        assert classify_trend(make_cluster(n=6), baseline=None, threshold=5).trend == Trend.ELEVATED

    def test_zero_baseline_uses_fallback(self, make_cluster):
        cluster = classify_trend(make_cluster(n=10), baseline=0, threshold=5)
        assert cluster.trend == Trend.SPIKE
        assert cluster.percent_change is None


class TestClassifyTrends:

    def test_baseline_lookup_by_id(self, make_cluster):
        known = make_cluster(cluster_id="known", n=7)
        new = make_cluster(cluster_id="new", n=6)
        classify_trends([known, new], baseline={"known": 2.0})
        assert known.trend == Trend.SPIKE
        assert new.trend == Trend.ELEVATED

    def test_rerun_is_stable(self, make_cluster):
        """Classifying twice gives the same labels as classifying once."""
        cluster = make_cluster(cluster_id="c", n=5)
        classify_trends([cluster], baseline={"c": 5.0})
        first = (cluster.trend, cluster.baseline_count, cluster.percent_change)
        classify_trends([cluster], baseline={"c": 5.0})
        assert (cluster.trend, cluster.baseline_count, cluster.percent_change) == first

    def test_bad_multiplier(self, make_cluster):
        with pytest.raises(ValueError):
            classify_trends([make_cluster()], spike_multiplier=1)
