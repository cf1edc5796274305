#!/usr/bin/env python3
"""
01_fetch_311_complaints.py

Fetch the trailing window of 311 quality-of-life complaints for the covered
neighborhoods from NYC Open Data.

- Server-side filter on created_date, incident_zip and complaint_type
- Pages through the Socrata API until a short page comes back
- Records provenance in data/raw/_manifest.json

Outputs:
- data/raw/311_complaints/raw_311_complaints_YYYYMMDD.csv (raw snapshot)
- data/raw/_manifest.json (updated with provenance)

Data Source:
- 311 Service Requests: https://data.cityofnewyork.us/resource/erm2-nwe9.json
"""

import os
import time
from datetime import datetime
from typing import List, Optional

import pandas as pd
import requests

from nuisance_watch.categories import CategoryRegistry
from nuisance_watch.hashing import hash_file
from nuisance_watch.io_utils import atomic_write_df, atomic_write_json, read_json, read_yaml
from nuisance_watch.logging_utils import get_logger
from nuisance_watch.neighborhoods import NeighborhoodZipIndex
from nuisance_watch.paths import PARAMS_FILE, RAW_311_DIR, RAW_DIR, ensure_dirs_exist
from nuisance_watch.pipeline import NuisanceParams
from nuisance_watch.time_utils import batch_window, soql_timestamp

DEFAULT_ENDPOINT = "https://data.cityofnewyork.us/resource/erm2-nwe9.json"

SOURCE_COLUMNS = [
    "unique_key",
    "created_date",
    "closed_date",
    "complaint_type",
    "descriptor",
    "incident_address",
    "street_name",
    "cross_street_1",
    "cross_street_2",
    "incident_zip",
    "city",
    "borough",
    "latitude",
    "longitude",
    "status",
    "resolution_description",
]


class FetchError(Exception):
    """Raised when the open-data API cannot be read."""
    pass


def _quote_list(values: List[str]) -> str:
    return ",".join("'" + v.replace("'", "''") + "'" for v in values)


def build_params(
    complaint_types: List[str],
    zips: List[str],
    start: datetime,
    end: datetime,
    offset: int,
    limit: int,
) -> dict:
    """SoQL query parameters for one page."""
    where = (
        f"created_date >= '{soql_timestamp(start)}' "
        f"AND created_date < '{soql_timestamp(end)}' "
        f"AND incident_zip IN ({_quote_list(zips)}) "
        f"AND complaint_type IN ({_quote_list(complaint_types)})"
    )
    return {
        "$select": ",".join(SOURCE_COLUMNS),
        "$where": where,
        "$order": "created_date DESC, unique_key",
        "$limit": limit,
        "$offset": offset,
    }


def fetch_page(
    session: requests.Session,
    endpoint: str,
    params: dict,
    fetch_config: dict,
    logger,
) -> List[dict]:
    """
    Fetch one page, retrying transient failures.

    Raises:
        FetchError: Once max_retries is exhausted
    """
    max_retries = fetch_config.get("max_retries", 3)
    retry_delay = fetch_config.get("retry_delay_seconds", 5)
    timeout = fetch_config.get("timeout_seconds", 120)

    for attempt in range(max_retries + 1):
        try:
            response = session.get(endpoint, params=params, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            if attempt < max_retries:
                logger.warning(f"Request failed, retrying in {retry_delay}s... ({e})")
                time.sleep(retry_delay)
            else:
                raise FetchError(f"Max retries exceeded at offset {params['$offset']}: {e}") from e


def fetch_window(
    complaint_types: List[str],
    zips: List[str],
    start: datetime,
    end: datetime,
    fetch_config: dict,
    logger,
    session: Optional[requests.Session] = None,
) -> pd.DataFrame:
    """Fetch every complaint in the window, page by page."""
    endpoint = fetch_config.get("api_endpoint", DEFAULT_ENDPOINT)
    page_size = fetch_config.get("page_size", 2000)

    session = session or requests.Session()
    session.headers.update({"Accept": "application/json"})
    token = os.environ.get(fetch_config.get("app_token_env", "SOCRATA_APP_TOKEN"))
    if token:
        session.headers["X-App-Token"] = token
    else:
        logger.warning("No Socrata app token set; requests will be throttled")

    all_records: List[dict] = []
    offset = 0
    page_num = 0

    logger.info(f"Fetching 311 complaints from {start.isoformat()} to {end.isoformat()}")
    logger.info(f"{len(complaint_types)} complaint types across {len(zips)} zips")

    while True:
        page_num += 1
        params = build_params(complaint_types, zips, start, end, offset, page_size)
        records = fetch_page(session, endpoint, params, fetch_config, logger)

        if not records:
            break

        all_records.extend(records)
        logger.info(f"Page {page_num}: {len(records)} records (total: {len(all_records)})")

        if len(records) < page_size:
            break
        offset += page_size
        time.sleep(0.5)

    logger.info(f"Total records fetched: {len(all_records):,}")
    return pd.DataFrame(all_records, columns=SOURCE_COLUMNS)


def main():
    """Main entry point."""
    with get_logger("01_fetch_311_complaints") as logger:
        logger.info("Starting 01_fetch_311_complaints.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        params = NuisanceParams.from_config(config)
        fetch_config = config.get("fetch", {})
        categories = (
            CategoryRegistry.from_config(config["categories"])
            if config.get("categories")
            else CategoryRegistry()
        )
        zip_index = NeighborhoodZipIndex()

        try:
            start, end = batch_window(params.window_days)
            ensure_dirs_exist()

            df = fetch_window(
                complaint_types=categories.all_source_types(),
                zips=zip_index.zips(),
                start=start,
                end=end,
                fetch_config=fetch_config,
                logger=logger,
            )

            filename = f"raw_311_complaints_{end.strftime('%Y%m%d')}.csv"
            raw_path = RAW_311_DIR / filename
            atomic_write_df(df, raw_path, index=False)
            logger.info(f"Saved: {raw_path}")

            manifest_path = RAW_DIR / "_manifest.json"
            manifest = read_json(manifest_path) if manifest_path.exists() else {"downloads": []}
            manifest["downloads"].append({
                "source": "NYC Open Data - 311 Service Requests",
                "dataset_id": "erm2-nwe9",
                "api_endpoint": fetch_config.get("api_endpoint", DEFAULT_ENDPOINT),
                "download_timestamp": end.isoformat(),
                "window": {"start": start.isoformat(), "end": end.isoformat()},
                "complaint_types": categories.all_source_types(),
                "filename": filename,
                "sha256": hash_file(raw_path),
                "row_count": len(df),
            })
            manifest["last_updated"] = end.isoformat()
            atomic_write_json(manifest, manifest_path)

            logger.log_outputs({"raw_311_complaints": str(raw_path)})
            logger.log_metrics({
                "total_complaints": len(df),
                "window_days": params.window_days,
                "complaint_types": len(categories.all_source_types()),
                "zips": len(zip_index.zips()),
            })
            logger.info(f"SUCCESS: Fetched {len(df):,} complaints")

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
