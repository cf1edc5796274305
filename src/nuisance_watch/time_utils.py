"""
Timezone-aware time helpers for batch windows.

All timestamps are handled in America/New_York. The 311 feed publishes
floating local timestamps, so naive values are localized to NYC rather than
assumed to be UTC.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple, Union

import pandas as pd
import pytz

NYC_TZ = pytz.timezone("America/New_York")


def to_nyc_timezone(
    timestamps: Union[pd.Series, pd.DatetimeIndex],
    source_tz: Optional[str] = None,
) -> pd.Series:
    """
    Convert timestamps to America/New_York.

    Args:
        timestamps: Series or DatetimeIndex (strings are parsed)
        source_tz: Zone for naive values; defaults to NYC local time

    Returns:
        Series of tz-aware NYC timestamps (unparseable values become NaT)
    """
    if isinstance(timestamps, pd.DatetimeIndex):
        timestamps = timestamps.to_series()

    if not pd.api.types.is_datetime64_any_dtype(timestamps):
        timestamps = pd.to_datetime(timestamps, errors="coerce")

    if timestamps.dt.tz is None:
        timestamps = timestamps.dt.tz_localize(
            source_tz or NYC_TZ, ambiguous="NaT", nonexistent="shift_forward"
        )

    return timestamps.dt.tz_convert(NYC_TZ)


def ensure_nyc_datetime(value: Union[datetime, pd.Timestamp]) -> datetime:
    """Localize a naive datetime to NYC, or convert an aware one."""
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is None:
        return NYC_TZ.localize(value)
    return value.astimezone(NYC_TZ)


def now_nyc() -> datetime:
    return datetime.now(NYC_TZ)


def batch_window(
    days: int = 7,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    (start, end) of the trailing window ending at `now`.

    Raises:
        ValueError: If days < 1
    """
    if days < 1:
        raise ValueError(f"Window must cover at least one day, got {days}")
    end = ensure_nyc_datetime(now) if now is not None else now_nyc()
    return end - timedelta(days=days), end


def filter_window(
    df: pd.DataFrame,
    timestamp_column: str,
    start: datetime,
    end: datetime,
) -> pd.DataFrame:
    """Rows with start <= timestamp < end (compared in NYC time)."""
    timestamps = to_nyc_timezone(df[timestamp_column])
    start = pd.Timestamp(ensure_nyc_datetime(start))
    end = pd.Timestamp(ensure_nyc_datetime(end))
    mask = (timestamps >= start) & (timestamps < end)
    return df[mask].copy()


def soql_timestamp(value: datetime) -> str:
    """Floating timestamp literal for a SoQL filter, e.g. 2026-10-12T11:00:00."""
    return ensure_nyc_datetime(value).strftime("%Y-%m-%dT%H:%M:%S")
