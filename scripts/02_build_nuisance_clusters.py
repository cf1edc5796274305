#!/usr/bin/env python3
"""
02_build_nuisance_clusters.py

Cluster the latest 311 complaint snapshot into nuisance hotspots.

- Clean and window the raw complaints (trailing window_days, NYC time)
- Group by category + anonymized location, keep clusters >= threshold
- Classify trends against the mean of recent run snapshots
- Rank by severity then count, and fold busy neighborhoods into roundups
- Append this run's snapshot to the baseline history, empty runs included

Options:
- --sample writes one fixed sample story brief and leaves history untouched
- --category / --neighborhood restrict the story briefs written

Outputs:
- data/processed/nuisance/clusters_YYYYMMDD.parquet (+ .csv)
- data/processed/nuisance/roundups_YYYYMMDD.json
- data/processed/nuisance/story_briefs_YYYYMMDD.json
- data/processed/nuisance/story_briefs_sample_YYYYMMDD.json (--sample only)
- data/processed/nuisance/history/clusters_YYYYMMDD.parquet
- data/processed/metadata/clusters_YYYYMMDD_metadata.json
"""

import argparse

import pandas as pd

from nuisance_watch.baseline import (
    clusters_to_frame,
    compute_baseline,
    load_history,
    recorded_runs,
    write_snapshot,
)
from nuisance_watch.categories import CategoryRegistry
from nuisance_watch.hashing import cluster_digest, write_metadata_sidecar
from nuisance_watch.ingest import clean_311_frame, window_records
from nuisance_watch.io_utils import atomic_write_df, atomic_write_json, latest_file, read_yaml
from nuisance_watch.logging_utils import get_logger
from nuisance_watch.neighborhoods import NeighborhoodZipIndex
from nuisance_watch.paths import HISTORY_DIR, NUISANCE_DIR, PARAMS_FILE, RAW_311_DIR, ensure_dirs_exist
from nuisance_watch.pipeline import NuisanceEngine, NuisanceParams
from nuisance_watch.qa import assert_batch_output
from nuisance_watch.selection import (
    filter_briefs,
    roundup_brief,
    sample_cluster,
    select_story_candidates,
    story_brief,
    story_slug,
)
from nuisance_watch.time_utils import batch_window, now_nyc


def load_raw_complaints(logger) -> tuple:
    """Latest raw snapshot written by 01_fetch_311_complaints.py."""
    raw_path = latest_file(RAW_311_DIR, "raw_311_complaints_*.csv")
    if raw_path is None:
        raise FileNotFoundError(
            f"No raw complaint snapshot in {RAW_311_DIR}. Run 01_fetch_311_complaints.py first."
        )
    logger.info(f"Loading raw complaints: {raw_path}")
    df = pd.read_csv(raw_path, dtype={"unique_key": str, "incident_zip": str})
    logger.info(f"Loaded {len(df):,} rows")
    return df, raw_path


def build_briefs(result, categories, params, run_date) -> list:
    """Story briefs for individual candidates, then one per roundup."""
    briefs = []
    for cluster in select_story_candidates(result.decision.individual, params.max_stories):
        brief = story_brief(cluster, categories, params.window_days)
        brief["slug"] = story_slug(cluster.category, cluster.display_location, run_date)
        briefs.append(brief)
    for group in result.decision.groups():
        brief = roundup_brief(group, params.window_days)
        brief["slug"] = story_slug("roundup", group.neighborhood_id, run_date)
        briefs.append(brief)
    return briefs


def write_sample_brief(categories, params, logger) -> None:
    """Write the fixed sample cluster's brief; no raw data or history involved."""
    now = now_nyc()
    cluster = sample_cluster(now)
    brief = story_brief(cluster, categories, params.window_days)
    brief["slug"] = story_slug(cluster.category, cluster.display_location, now.date())

    path = NUISANCE_DIR / f"story_briefs_sample_{now.strftime('%Y%m%d')}.json"
    atomic_write_json([brief], path)
    logger.info(f"Saved sample brief: {path}")
    logger.log_outputs({"story_briefs": str(path)})
    logger.log_metrics({"story_briefs": 1, "sample": True})


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Build nuisance clusters from the latest 311 snapshot")
    parser.add_argument("--sample", action="store_true",
                        help="Write one fixed sample story brief instead of a real run")
    parser.add_argument("--category", default=None,
                        help="Only write story briefs for this category (e.g. 'Noise - Commercial')")
    parser.add_argument("--neighborhood", default=None,
                        help="Only write story briefs for this neighborhood id (e.g. nyc-soho)")
    args = parser.parse_args()

    with get_logger("02_build_nuisance_clusters") as logger:
        logger.info("Starting 02_build_nuisance_clusters.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        params = NuisanceParams.from_config(config)
        categories = (
            CategoryRegistry.from_config(config["categories"])
            if config.get("categories")
            else CategoryRegistry()
        )
        zip_index = NeighborhoodZipIndex()
        engine = NuisanceEngine(categories, zip_index, params)
        logger.info(
            f"Engine ready: {len(categories)} categories, {len(zip_index)} zips, "
            f"threshold={params.threshold}, spike_multiplier={params.spike_multiplier}"
        )

        try:
            ensure_dirs_exist()

            if args.sample:
                write_sample_brief(categories, params, logger)
                return

            # =================================================================
            # 1. Records for the window
            # =================================================================
            raw_df, raw_path = load_raw_complaints(logger)
            df = clean_311_frame(raw_df, logger=logger)

            start, end = batch_window(params.window_days)
            run_date = end.date()
            records = window_records(df, start, end, logger=logger)

            # =================================================================
            # 2. Baseline from prior runs
            # =================================================================
            history = load_history(HISTORY_DIR, logger=logger)
            baseline = compute_baseline(
                history,
                as_of=run_date,
                lookback_runs=params.baseline_lookback_runs,
                run_dates=recorded_runs(HISTORY_DIR),
            )
            logger.info(f"Baseline covers {len(baseline):,} cluster ids")

            # =================================================================
            # 3. Cluster, classify, rank, decide roundups
            # =================================================================
            result = engine.run(records, baseline=baseline, logger=logger)
            qa_summary = assert_batch_output(
                result.clusters, result.decision, params.threshold, logger=logger
            )
            digest = cluster_digest(result.clusters)
            logger.info(f"Cluster digest: {digest}")

            snapshot = clusters_to_frame(result.clusters, run_date)

            if not result.clusters:
                # Still a run: later baselines average over it as zero
                history_path = write_snapshot(snapshot, HISTORY_DIR, run_date=run_date)
                logger.warning(f"No clusters above threshold; recorded empty run {history_path}")
                logger.log_outputs({"history_snapshot": str(history_path)})
                logger.log_metrics({**result.stats.as_dict(), "cluster_digest": digest})
                return

            # =================================================================
            # 4. Write outputs
            # =================================================================
            stamp = run_date.strftime("%Y%m%d")

            clusters_path = NUISANCE_DIR / f"clusters_{stamp}.parquet"
            atomic_write_df(snapshot, clusters_path, index=False)
            atomic_write_df(snapshot, clusters_path.with_suffix(".csv"), index=False)
            logger.info(f"Saved: {clusters_path}")

            roundups_path = NUISANCE_DIR / f"roundups_{stamp}.json"
            atomic_write_json(
                {
                    "run_date": run_date.isoformat(),
                    "individual": [c.id for c in result.decision.individual],
                    "roundups": {
                        group.neighborhood_id: {
                            "id": group.id,
                            "neighborhood": group.neighborhood,
                            "hotspot_count": group.hotspot_count,
                            "total_complaints": group.total_complaints,
                            "severity": group.severity.value,
                            "trend": group.trend.value,
                            "clusters": [c.id for c in group.clusters],
                        }
                        for group in result.decision.groups()
                    },
                },
                roundups_path,
            )
            logger.info(f"Saved: {roundups_path}")

            briefs = build_briefs(result, categories, params, run_date)
            if args.category or args.neighborhood:
                briefs = filter_briefs(briefs, category=args.category, neighborhood_id=args.neighborhood)
                logger.info(
                    f"Filtered briefs to category={args.category}, "
                    f"neighborhood={args.neighborhood}: {len(briefs)} remain"
                )
            briefs_path = NUISANCE_DIR / f"story_briefs_{stamp}.json"
            atomic_write_json(briefs, briefs_path)
            logger.info(f"Saved: {briefs_path} ({len(briefs)} briefs)")

            history_path = write_snapshot(snapshot, HISTORY_DIR, run_date=run_date)
            logger.info(f"Appended snapshot to history: {history_path}")

            sidecar = write_metadata_sidecar(
                output_path=clusters_path,
                inputs={"raw_311_complaints": str(raw_path), "params": str(PARAMS_FILE)},
                config=config,
                run_id=logger.run_id,
                extra={
                    "run_date": run_date.isoformat(),
                    "window_start": start.isoformat(),
                    "window_end": end.isoformat(),
                    "cluster_digest": digest,
                    "history_runs": len(recorded_runs(HISTORY_DIR)),
                },
            )
            logger.info(f"Saved metadata: {sidecar}")

            logger.log_outputs({
                "clusters": str(clusters_path),
                "roundups": str(roundups_path),
                "story_briefs": str(briefs_path),
                "history_snapshot": str(history_path),
            })
            logger.log_metrics({
                **result.stats.as_dict(),
                **{f"qa_{k}": v for k, v in qa_summary.items()},
                "story_briefs": len(briefs),
                "cluster_digest": digest,
            })
            logger.info(
                f"SUCCESS: {len(result.clusters)} clusters, "
                f"{len(result.decision.roundups)} roundup neighborhoods, {len(briefs)} briefs"
            )

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
