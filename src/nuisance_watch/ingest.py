"""
Turn raw 311 frames into RawEventRecord lists.

The frame is cleaned and schema-checked first. A missing unique_key or
created_date anywhere in the batch is a structural error and aborts the run;
duplicate unique_keys (the API can return a record twice across pages) are
dropped, keeping the first. Validation happens before windowing, so a row
with an unparseable created_date cannot slip out as "outside the window".
"""

from datetime import datetime
from typing import List

import pandas as pd

from nuisance_watch.models import RawEventRecord
from nuisance_watch.schemas import RAW_RECORD_SCHEMA, validate_schema
from nuisance_watch.time_utils import filter_window, to_nyc_timezone

TEXT_COLUMNS = [
    "unique_key",
    "complaint_type",
    "descriptor",
    "incident_address",
    "street_name",
    "cross_street_1",
    "cross_street_2",
    "incident_zip",
    "borough",
    "city",
    "status",
    "resolution_description",
]


def clean_311_frame(df: pd.DataFrame, logger=None) -> pd.DataFrame:
    """
    Standardize a raw 311 frame.

    - Lower-case column names
    - Parse created_date / closed_date into NYC time
    - Coerce latitude / longitude to numbers
    - Strip text columns (zip codes stay strings: "07302" must keep its zero)

    Returns:
        Cleaned copy of the frame
    """
    df = df.copy()
    df.columns = df.columns.str.lower()

    for col in ["created_date", "closed_date"]:
        if col in df.columns:
            df[col] = to_nyc_timezone(df[col])

    for col in ["latitude", "longitude"]:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    # CSV round-trips turn keys and zips into floats ("10014.0")
    for col in ["unique_key", "incident_zip"]:
        if col in df.columns and pd.api.types.is_numeric_dtype(df[col]):
            df[col] = df[col].astype("Int64").astype(object).where(df[col].notna(), None)

    for col in TEXT_COLUMNS:
        if col in df.columns:
            present = df[col].notna()
            df.loc[present, col] = df.loc[present, col].astype(str).str.strip()

    if logger:
        logger.info(f"Cleaned 311 frame: {len(df):,} rows, {len(df.columns)} columns")
        if "created_date" in df.columns:
            bad_dates = int(df["created_date"].isna().sum())
            if bad_dates:
                logger.warning(f"{bad_dates:,} rows have an unparseable created_date")

    return df


def records_from_frame(df: pd.DataFrame, logger=None) -> List[RawEventRecord]:
    """
    Validate a cleaned frame and build records.

    Raises:
        SchemaError: If required columns are absent or unique_key / created_date are blank
    """
    validate_schema(df, RAW_RECORD_SCHEMA, context="records_from_frame")

    duplicated = df["unique_key"].astype(str).duplicated(keep="first")
    if duplicated.any():
        if logger:
            logger.warning(f"Dropping {int(duplicated.sum()):,} duplicate unique_key rows")
        df = df[~duplicated]

    records = [RawEventRecord.from_source_row(row) for row in df.to_dict("records")]

    if logger:
        logger.info(f"Built {len(records):,} complaint records")
    return records


def window_records(
    df: pd.DataFrame,
    start: datetime,
    end: datetime,
    logger=None,
) -> List[RawEventRecord]:
    """
    Validate the whole cleaned frame, then build records for [start, end).

    Raises:
        SchemaError: If any row, inside the window or not, is missing its
            unique_key or created_date
    """
    validate_schema(df, RAW_RECORD_SCHEMA, context="window_records")

    windowed = filter_window(df, "created_date", start, end)
    if logger:
        outside = len(df) - len(windowed)
        logger.info(
            f"Window {start.date()} to {end.date()}: {len(windowed):,} complaints "
            f"({outside:,} outside the window)"
        )
    return records_from_frame(windowed, logger=logger)
