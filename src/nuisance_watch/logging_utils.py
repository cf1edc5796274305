"""
Structured JSONL logging for pipeline runs.

Every script writes one JSONL file per run under logs/, with standard keys
(script_name, run_id, level, message, extra) and mirrors messages to the
console. Library functions take an optional `logger` and never set up
logging themselves.
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from nuisance_watch.paths import LOGS_DIR


def generate_run_id() -> str:
    """UTC timestamp plus a short uuid, e.g. 20260119_110000_1a2b3c4d."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{timestamp}_{uuid.uuid4().hex[:8]}"


def get_versions() -> dict[str, str]:
    """Versions of the libraries that shape pipeline output."""
    versions = {"python": sys.version.split()[0]}

    try:
        import pandas
        versions["pandas"] = pandas.__version__
    except ImportError:
        pass

    try:
        import numpy
        versions["numpy"] = numpy.__version__
    except ImportError:
        pass

    try:
        import pyarrow
        versions["pyarrow"] = pyarrow.__version__
    except ImportError:
        pass

    try:
        import pytz
        versions["pytz"] = pytz.__version__
    except ImportError:
        pass

    return versions


class JSONLLogger:
    """
    Structured JSONL logger for pipeline scripts.

    Usage:
        with JSONLLogger("02_build_nuisance_clusters") as logger:
            logger.info("Starting", extra={"window_days": 7})
            logger.log_batch_stats(result.stats.as_dict())
    """

    def __init__(
        self,
        script_name: str,
        run_id: Optional[str] = None,
        log_dir: Optional[Path] = None,
        console: bool = True,
    ):
        self.script_name = script_name
        self.run_id = run_id or generate_run_id()
        self.log_dir = Path(log_dir) if log_dir else LOGS_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / f"{script_name}_{self.run_id}.jsonl"
        self._file_handle = open(self.log_file, "a", encoding="utf-8")

        self._logger = logging.getLogger(f"nuisance_watch.{script_name}")
        self._logger.setLevel(logging.DEBUG)
        self._console_handler = None
        if console:
            self._console_handler = logging.StreamHandler(sys.stdout)
            self._console_handler.setLevel(logging.INFO)
            self._console_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
            )
            self._logger.addHandler(self._console_handler)

        self._write_record(
            level="INFO",
            message="Logger initialized",
            extra={
                "script_name": script_name,
                "run_id": self.run_id,
                "log_file": str(self.log_file),
                "versions": get_versions(),
            },
        )

    def _write_record(
        self,
        level: str,
        message: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "script_name": self.script_name,
            "run_id": self.run_id,
            "level": level,
            "message": message,
        }
        if extra:
            record["extra"] = extra

        self._file_handle.write(json.dumps(record, default=str) + "\n")
        self._file_handle.flush()

    def debug(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._write_record("DEBUG", message, extra)
        self._logger.debug(message)

    def info(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._write_record("INFO", message, extra)
        self._logger.info(message)

    def warning(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._write_record("WARNING", message, extra)
        self._logger.warning(message)

    def error(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._write_record("ERROR", message, extra)
        self._logger.error(message)

    def log_config(self, config: dict[str, Any], config_digest: Optional[str] = None) -> None:
        self._write_record(
            "INFO",
            "Configuration loaded",
            extra={"config": config, "config_digest": config_digest},
        )

    def log_inputs(self, inputs: dict[str, str]) -> None:
        self._write_record("INFO", "Inputs registered", extra={"inputs": inputs})

    def log_outputs(self, outputs: dict[str, str]) -> None:
        self._write_record("INFO", "Outputs registered", extra={"outputs": outputs})

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self._write_record("INFO", "Metrics recorded", extra={"metrics": metrics})

    def log_batch_stats(self, stats: dict[str, Any]) -> None:
        """Scanned vs clustered counts, drop reasons, category/severity/trend tallies."""
        self._write_record("INFO", "Batch stats recorded", extra={"batch_stats": stats})

    def close(self) -> None:
        self._write_record("INFO", "Logger closing", extra={"run_id": self.run_id})
        self._file_handle.close()
        if self._console_handler is not None:
            self._logger.removeHandler(self._console_handler)

    def __enter__(self) -> "JSONLLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.error(
                f"Exception occurred: {exc_type.__name__}: {exc_val}",
                extra={"traceback": str(exc_tb)},
            )
        self.close()


def get_logger(script_name: str, run_id: Optional[str] = None) -> JSONLLogger:
    """Convenience constructor used by the scripts."""
    return JSONLLogger(script_name=script_name, run_id=run_id)
