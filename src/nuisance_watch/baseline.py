"""
Cluster snapshot history and baseline computation.

Each run writes one snapshot file to the history directory, named by its run
date. Runs with no significant clusters still write an empty snapshot, so
the file names alone are the ledger of recorded runs. The baseline for a
cluster id is its mean count over the most recent N recorded runs before the
current one, with runs where the cluster did not appear counted as zero.

Snapshots hold only clusters that met the significance threshold. A location
that stays just under the threshold week after week therefore has no
baseline, and the first week it crosses is labelled from volume alone.
"""

import re
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from nuisance_watch.io_utils import atomic_write_df
from nuisance_watch.models import ComplaintCluster
from nuisance_watch.schemas import CLUSTER_SNAPSHOT_SCHEMA, validate_schema

SNAPSHOT_COLUMNS = [
    "run_date",
    "cluster_id",
    "category",
    "severity",
    "neighborhood",
    "neighborhood_id",
    "display_location",
    "location",
    "street",
    "is_commercial",
    "count",
    "trend",
    "baseline_count",
    "percent_change",
]


def run_day(value: Union[date, datetime, str]) -> pd.Timestamp:
    """Midnight, tz-naive timestamp for a run date."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def clusters_to_frame(
    clusters: Iterable[ComplaintCluster],
    run_date: Union[date, datetime, str],
) -> pd.DataFrame:
    """Snapshot frame for a batch, validated against CLUSTER_SNAPSHOT_SCHEMA."""
    rows = [c.to_row() for c in clusters]
    df = pd.DataFrame(rows, columns=SNAPSHOT_COLUMNS[1:])
    df.insert(0, "run_date", run_day(run_date))
    df["run_date"] = pd.to_datetime(df["run_date"])

    df["count"] = df["count"].astype("int64")
    df["is_commercial"] = df["is_commercial"].astype(bool)
    df["baseline_count"] = pd.to_numeric(df["baseline_count"], errors="coerce").astype("float64")
    df["percent_change"] = pd.to_numeric(df["percent_change"], errors="coerce").astype("float64")

    validate_schema(df, CLUSTER_SNAPSHOT_SCHEMA, context="clusters_to_frame")
    return df


_SNAPSHOT_NAME = re.compile(r"^clusters_(\d{8})\.parquet$")


def snapshot_path(history_dir: Union[str, Path], run_date: Union[date, datetime, str]) -> Path:
    stamp = run_day(run_date).strftime("%Y%m%d")
    return Path(history_dir) / f"clusters_{stamp}.parquet"


def write_snapshot(
    df: pd.DataFrame,
    history_dir: Union[str, Path],
    run_date: Optional[Union[date, datetime, str]] = None,
) -> Path:
    """
    Write a snapshot frame into the history directory.

    A run with no clusters is still recorded (an empty file) when its
    run_date is given, so later baselines count it as a zero week. A rerun
    on the same date replaces that date's snapshot instead of adding a
    second one.

    Raises:
        ValueError: If the frame is empty and no run_date is given, or if
            its rows do not all belong to one run_date
    """
    run_dates = sorted({run_day(d) for d in df["run_date"]}) if not df.empty else []
    if run_date is None:
        if not run_dates:
            raise ValueError("Empty snapshot needs an explicit run_date")
        if len(run_dates) != 1:
            raise ValueError(f"Snapshot must cover exactly one run_date, got {len(run_dates)}")
        run_date = run_dates[0]
    elif any(d != run_day(run_date) for d in run_dates):
        raise ValueError(f"Snapshot rows do not all belong to run_date {run_day(run_date).date()}")

    path = snapshot_path(history_dir, run_date)
    atomic_write_df(df, path, index=False)
    return path


def recorded_runs(history_dir: Union[str, Path]) -> List[pd.Timestamp]:
    """Run dates with a snapshot file, empty runs included, oldest first."""
    runs = []
    for path in Path(history_dir).glob("clusters_*.parquet"):
        match = _SNAPSHOT_NAME.match(path.name)
        if match:
            runs.append(run_day(pd.Timestamp(match.group(1))))
    return sorted(runs)


def load_history(history_dir: Union[str, Path], logger=None) -> pd.DataFrame:
    """Concatenate every non-empty snapshot in the history directory (empty frame if none)."""
    files = sorted(Path(history_dir).glob("clusters_*.parquet"))
    frames = [pd.read_parquet(f) for f in files]
    frames = [f for f in frames if not f.empty]
    if not frames:
        if logger:
            logger.warning(f"No cluster history in {history_dir}; trends fall back to volume")
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)

    history = pd.concat(frames, ignore_index=True)
    validate_schema(history, CLUSTER_SNAPSHOT_SCHEMA, context=f"history {history_dir}")

    if logger:
        logger.info(
            f"Loaded cluster history: {len(files)} runs "
            f"({len(files) - len(frames)} empty), {len(history):,} rows"
        )
    return history


def compute_baseline(
    history: Optional[pd.DataFrame],
    as_of: Optional[Union[date, datetime, str]] = None,
    lookback_runs: int = 4,
    run_dates: Optional[Iterable[Union[date, datetime, str]]] = None,
) -> Dict[str, float]:
    """
    Mean historical count per cluster id.

    Args:
        history: Concatenated snapshots (CLUSTER_SNAPSHOT_SCHEMA)
        as_of: Only runs strictly before this date are used (default: all)
        lookback_runs: Number of most recent runs to average over
        run_dates: Every recorded run, including runs that produced no
            clusters (see recorded_runs); the dates present in `history`
            are always included

    Returns:
        cluster id -> mean count; ids with a zero mean are omitted
    """
    if lookback_runs < 1:
        raise ValueError(f"lookback_runs must be >= 1, got {lookback_runs}")

    if history is None:
        history = pd.DataFrame(columns=SNAPSHOT_COLUMNS)
    history = history.copy()
    history["run_date"] = history["run_date"].map(run_day)

    runs = set(history["run_date"]) | {run_day(d) for d in (run_dates or [])}
    if as_of is not None:
        cutoff = run_day(as_of)
        runs = {r for r in runs if r < cutoff}
    runs = sorted(runs)[-lookback_runs:]
    if not runs:
        return {}

    window = history[history["run_date"].isin(runs)]
    if window.empty:
        return {}

    # one column per run with rows; runs without rows add only to the divisor
    per_run = window.pivot_table(
        index="cluster_id",
        columns="run_date",
        values="count",
        aggfunc="sum",
        fill_value=0,
    )
    means = per_run.to_numpy(dtype=np.float64).sum(axis=1) / len(runs)
    baseline = pd.Series(means, index=per_run.index)
    baseline = baseline[baseline > 0]
    return {str(k): float(v) for k, v in baseline.items()}
