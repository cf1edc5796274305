"""
Tests for raw frame cleaning and record construction.
"""

from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from nuisance_watch.ingest import clean_311_frame, records_from_frame, window_records
from nuisance_watch.models import RawEventRecord, RecordError
from nuisance_watch.schemas import SchemaError


def raw_frame(**overrides):
    data = {
        "Unique_Key": ["1001", "1002"],
        "Created_Date": ["2026-10-15T23:30:00.000", "2026-10-16T01:05:00.000"],
        "Closed_Date": [None, "2026-10-16T03:00:00.000"],
        "Complaint_Type": ["Noise - Commercial", " Rat Sighting "],
        "Descriptor": ["Loud Music/Party", None],
        "Incident_Address": ["80 WOOSTER STREET", "123 BLEECKER STREET"],
        "Street_Name": ["WOOSTER STREET", "BLEECKER STREET"],
        "Cross_Street_1": ["SPRING STREET", None],
        "Cross_Street_2": ["BROOME STREET", None],
        "Incident_Zip": ["10012", "10012"],
        "Latitude": ["40.7247", ""],
        "Longitude": ["-74.0005", None],
    }
    data.update(overrides)
    return pd.DataFrame(data)


class TestClean311Frame:

    def test_columns_lowercased(self):
        df = clean_311_frame(raw_frame())
        assert "unique_key" in df.columns
        assert "created_date" in df.columns

    def test_dates_in_nyc(self):
        df = clean_311_frame(raw_frame())
        assert str(df["created_date"].dt.tz) == "America/New_York"
        assert df["created_date"].iloc[0].hour == 23

    def test_coordinates_numeric(self):
        df = clean_311_frame(raw_frame())
        assert df["latitude"].iloc[0] == pytest.approx(40.7247)
        assert np.isnan(df["latitude"].iloc[1])

    def test_text_stripped(self):
        df = clean_311_frame(raw_frame())
        assert df["complaint_type"].iloc[1] == "Rat Sighting"

    def test_numeric_keys_and_zips_restored(self):
        df = clean_311_frame(raw_frame(Unique_Key=[1001, 1002], Incident_Zip=[10012.0, np.nan]))
        assert df["unique_key"].tolist() == ["1001", "1002"]
        assert df["incident_zip"].iloc[0] == "10012"
        assert pd.isna(df["incident_zip"].iloc[1])

    def test_input_not_mutated(self):
        raw = raw_frame()
        clean_311_frame(raw)
        assert "Unique_Key" in raw.columns


class TestRecordsFromFrame:

    def test_builds_records(self):
        records = records_from_frame(clean_311_frame(raw_frame()))
        assert len(records) == 2
        first = records[0]
        assert isinstance(first, RawEventRecord)
        assert first.id == "1001"
        assert first.type_label == "Noise - Commercial"
        assert first.address == "80 WOOSTER STREET"
        assert first.cross_streets == "SPRING STREET and BROOME STREET"
        assert first.zip_code == "10012"
        assert first.closed_at is None
        assert records[1].descriptor is None
        assert records[1].latitude is None

    def test_duplicates_dropped(self):
        df = clean_311_frame(raw_frame(Unique_Key=["1001", "1001"]))
        records = records_from_frame(df)
        assert [r.id for r in records] == ["1001"]

    def test_missing_created_date_fails_batch(self):
        df = clean_311_frame(raw_frame(Created_Date=["2026-10-15T23:30:00.000", "not a date"]))
        with pytest.raises(SchemaError):
            records_from_frame(df)

    def test_blank_key_fails_batch(self):
        df = clean_311_frame(raw_frame(Unique_Key=["1001", " "]))
        with pytest.raises(SchemaError):
            records_from_frame(df)

    def test_missing_column_fails_batch(self):
        df = clean_311_frame(raw_frame()).drop(columns=["incident_zip"])
        with pytest.raises(SchemaError):
            records_from_frame(df)



class TestWindowRecords:

    START = datetime(2026, 10, 12)
    END = datetime(2026, 10, 19)

    def test_keeps_only_window(self):
        df = clean_311_frame(raw_frame(Created_Date=["2026-10-15T23:30:00.000", "2026-09-01T12:00:00.000"]))
        records = window_records(df, self.START, self.END)
        assert [r.id for r in records] == ["1001"]

    def test_unparseable_date_fails_batch_before_windowing(self):
        """A bad created_date must not be dropped as if it were outside the window."""
        df = clean_311_frame(raw_frame(
            Unique_Key=["1", "2"],
            Created_Date=["2026-10-15T23:30:00.000", "not-a-date"],
        ))
        with pytest.raises(SchemaError):
            window_records(df, self.START, self.END)

    def test_blank_key_outside_window_fails_batch(self):
        df = clean_311_frame(raw_frame(
            Unique_Key=["1001", ""],
            Created_Date=["2026-10-15T23:30:00.000", "2026-09-01T12:00:00.000"],
        ))
        with pytest.raises(SchemaError):
            window_records(df, self.START, self.END)


class TestRawEventRecord:

    def test_requires_id(self):
        with pytest.raises(RecordError):
            RawEventRecord.from_source_row({"unique_key": "", "created_date": "2026-10-15"})

    def test_requires_created_at(self):
        with pytest.raises(RecordError):
            RawEventRecord.from_source_row({"unique_key": "1", "created_date": None})

    def test_single_cross_street(self):
        record = RawEventRecord.from_source_row({
            "unique_key": "1",
            "created_date": "2026-10-15T10:00:00",
            "cross_street_2": "MOTT STREET",
        })
        assert record.cross_streets == "MOTT STREET"
