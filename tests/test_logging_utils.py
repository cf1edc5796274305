"""
Tests for the JSONL run logger.
"""

import json

import pytest

from nuisance_watch.logging_utils import JSONLLogger, generate_run_id, get_versions


def read_log(logger):
    with open(logger.log_file, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


class TestRunId:

    def test_unique(self):
        assert generate_run_id() != generate_run_id()

    def test_versions(self):
        versions = get_versions()
        assert "python" in versions
        assert "pandas" in versions


class TestJSONLLogger:

    def test_records_have_standard_keys(self, tmp_path):
        with JSONLLogger("02_build_nuisance_clusters", log_dir=tmp_path, console=False) as logger:
            logger.info("hello", extra={"window_days": 7})
        records = read_log(logger)
        assert records[0]["message"] == "Logger initialized"
        assert records[-1]["message"] == "Logger closing"
        hello = next(r for r in records if r["message"] == "hello")
        assert hello["level"] == "INFO"
        assert hello["run_id"] == logger.run_id
        assert hello["extra"] == {"window_days": 7}

    def test_batch_stats(self, tmp_path):
        with JSONLLogger("t", log_dir=tmp_path, console=False) as logger:
            logger.log_batch_stats({"records_scanned": 12})
        records = read_log(logger)
        stats = next(r for r in records if r["message"] == "Batch stats recorded")
        assert stats["extra"]["batch_stats"]["records_scanned"] == 12

    def test_exception_logged(self, tmp_path):
        with pytest.raises(ValueError):
            with JSONLLogger("t", log_dir=tmp_path, console=False) as logger:
                raise ValueError("bad batch")
        records = read_log(logger)
        assert any(r["level"] == "ERROR" and "bad batch" in r["message"] for r in records)
