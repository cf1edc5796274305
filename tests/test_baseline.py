"""
Tests for snapshot history and baseline computation.
"""

from datetime import date

import pandas as pd
import pytest

from nuisance_watch.baseline import (
    SNAPSHOT_COLUMNS,
    clusters_to_frame,
    compute_baseline,
    load_history,
    recorded_runs,
    run_day,
    snapshot_path,
    write_snapshot,
)
from nuisance_watch.models import Trend
from nuisance_watch.pipeline import NuisanceEngine
from nuisance_watch.schemas import SchemaError


def history_frame(rows):
    """rows: (run_date, cluster_id, count)"""
    return pd.DataFrame(
        [{"run_date": pd.Timestamp(d), "cluster_id": cid, "count": n} for d, cid, n in rows]
    )


class TestClustersToFrame:

    def test_columns_and_types(self, make_cluster):
        cluster = make_cluster(cluster_id="a", n=6)
        cluster.trend = Trend.ELEVATED
        df = clusters_to_frame([cluster], date(2026, 10, 19))
        assert list(df.columns) == SNAPSHOT_COLUMNS
        assert df["run_date"].iloc[0] == pd.Timestamp("2026-10-19")
        assert df["count"].iloc[0] == 6
        assert df["trend"].iloc[0] == "elevated"
        assert pd.isna(df["baseline_count"].iloc[0])

    def test_run_day_drops_time_and_zone(self):
        ts = pd.Timestamp("2026-10-19 23:15", tz="America/New_York")
        assert run_day(ts) == pd.Timestamp("2026-10-19")

    def test_snapshot_path(self, tmp_path):
        assert snapshot_path(tmp_path, "2026-10-19").name == "clusters_20261019.parquet"


class TestHistoryRoundTrip:

    def test_write_and_load(self, tmp_path, make_cluster):
        for day, n in [("2026-10-05", 6), ("2026-10-12", 8)]:
            write_snapshot(clusters_to_frame([make_cluster(cluster_id="a", n=n)], day), tmp_path)

        history = load_history(tmp_path)
        assert len(history) == 2
        assert compute_baseline(history, as_of="2026-10-19") == {"a": 7.0}

    def test_rerun_replaces_same_day(self, tmp_path, make_cluster):
        write_snapshot(clusters_to_frame([make_cluster(cluster_id="a", n=6)], "2026-10-19"), tmp_path)
        write_snapshot(clusters_to_frame([make_cluster(cluster_id="a", n=9)], "2026-10-19"), tmp_path)
        history = load_history(tmp_path)
        assert history["count"].tolist() == [9]

    def test_empty_history(self, tmp_path):
        history = load_history(tmp_path)
        assert history.empty
        assert compute_baseline(history) == {}

    def test_empty_snapshot_refused(self, tmp_path):
        with pytest.raises(ValueError):
            write_snapshot(clusters_to_frame([], "2026-10-19"), tmp_path)

    def test_empty_run_recorded_with_run_date(self, tmp_path):
        path = write_snapshot(clusters_to_frame([], "2026-10-19"), tmp_path, run_date="2026-10-19")
        assert path.name == "clusters_20261019.parquet"
        assert recorded_runs(tmp_path) == [pd.Timestamp("2026-10-19")]
        assert load_history(tmp_path).empty

    def test_run_date_must_match_rows(self, tmp_path, make_cluster):
        df = clusters_to_frame([make_cluster(cluster_id="a")], "2026-10-12")
        with pytest.raises(ValueError):
            write_snapshot(df, tmp_path, run_date="2026-10-19")

    def test_recorded_runs_ignores_other_files(self, tmp_path, make_cluster):
        write_snapshot(clusters_to_frame([make_cluster(cluster_id="a")], "2026-10-12"), tmp_path)
        write_snapshot(clusters_to_frame([], "2026-10-05"), tmp_path, run_date="2026-10-05")
        (tmp_path / "clusters_latest.parquet").write_bytes(b"")
        assert recorded_runs(tmp_path) == [pd.Timestamp("2026-10-05"), pd.Timestamp("2026-10-12")]

    def test_empty_runs_lower_the_baseline(self, tmp_path, make_cluster):
        """Three quiet weeks then one busy week: the mean is over all four runs."""
        for day in ["2026-09-21", "2026-09-28", "2026-10-05"]:
            write_snapshot(clusters_to_frame([], day), tmp_path, run_date=day)
        write_snapshot(clusters_to_frame([make_cluster(cluster_id="a", n=10)], "2026-10-12"), tmp_path)

        baseline = compute_baseline(
            load_history(tmp_path),
            as_of="2026-10-19",
            lookback_runs=4,
            run_dates=recorded_runs(tmp_path),
        )
        assert baseline == {"a": 2.5}

    def test_corrupt_history_rejected(self, tmp_path):
        bad = pd.DataFrame({"run_date": [pd.Timestamp("2026-10-12")], "cluster_id": ["a"], "count": [0]})
        bad.to_parquet(tmp_path / "clusters_20261012.parquet")
        with pytest.raises(SchemaError):
            load_history(tmp_path)


class TestComputeBaseline:

    def test_absent_runs_count_as_zero(self):
        history = history_frame([
            ("2026-10-05", "a", 6),
            ("2026-10-05", "b", 10),
            ("2026-10-12", "a", 8),
        ])
        assert compute_baseline(history, as_of="2026-10-19") == {"a": 7.0, "b": 5.0}

    def test_lookback_limits_runs(self):
        history = history_frame([
            ("2026-09-28", "a", 20),
            ("2026-10-05", "a", 6),
            ("2026-10-12", "a", 8),
        ])
        assert compute_baseline(history, lookback_runs=2) == {"a": 7.0}
        assert compute_baseline(history, lookback_runs=1) == {"a": 8.0}

    def test_as_of_excludes_current_run(self):
        history = history_frame([("2026-10-12", "a", 6), ("2026-10-19", "a", 50)])
        assert compute_baseline(history, as_of=date(2026, 10, 19)) == {"a": 6.0}

    def test_nothing_before_as_of(self):
        history = history_frame([("2026-10-19", "a", 6)])
        assert compute_baseline(history, as_of="2026-10-19") == {}

    def test_invalid_lookback(self):
        with pytest.raises(ValueError):
            compute_baseline(history_frame([("2026-10-12", "a", 6)]), lookback_runs=0)

    def test_run_dates_without_rows_count_as_zero(self):
        history = history_frame([("2026-10-12", "a", 8)])
        baseline = compute_baseline(
            history,
            as_of="2026-10-19",
            run_dates=[date(2026, 10, 5), date(2026, 10, 12)],
        )
        assert baseline == {"a": 4.0}

    def test_only_empty_runs(self):
        assert compute_baseline(None, as_of="2026-10-19", run_dates=["2026-10-12"]) == {}


class TestSubThresholdLocations:

    def test_sub_threshold_cluster_has_no_history(self, tmp_path, categories, zip_index, make_record):
        """Only clusters that met the threshold are snapshotted, so only they get a baseline."""
        records = [make_record() for _ in range(5)]
        records += [
            make_record(address="80 WOOSTER STREET", street="WOOSTER STREET")
            for _ in range(4)
        ]
        result = NuisanceEngine(categories, zip_index).run(records)
        assert result.stats.clusters_detected == 2
        assert len(result.clusters) == 1

        write_snapshot(clusters_to_frame(result.clusters, "2026-10-12"), tmp_path)
        baseline = compute_baseline(load_history(tmp_path), as_of="2026-10-19")
        assert list(baseline) == [result.clusters[0].id]
        assert baseline[result.clusters[0].id] == 5.0
