"""
Hashing utilities for provenance and run-to-run comparison.

- File and config digests go into the metadata sidecar written next to every
  cluster output.
- cluster_digest() fingerprints a batch result so two runs over the same
  records and baseline can be checked for identical output.
"""

import hashlib
import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from nuisance_watch.io_utils import atomic_write_json, read_json
from nuisance_watch.logging_utils import get_versions
from nuisance_watch.models import ComplaintCluster
from nuisance_watch.paths import METADATA_DIR


def hash_file(path: Union[str, Path], algorithm: str = "sha256") -> str:
    """Hex digest of a file, read in chunks."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cannot hash non-existent file: {path}")

    h = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def hash_string(s: str, algorithm: str = "sha256") -> str:
    h = hashlib.new(algorithm)
    h.update(s.encode("utf-8"))
    return h.hexdigest()


def hash_dict(d: Dict[str, Any], algorithm: str = "sha256") -> str:
    """Digest of a dict via key-sorted JSON."""
    return hash_string(json.dumps(d, sort_keys=True, default=str), algorithm)


def cluster_digest(clusters: Iterable[ComplaintCluster]) -> str:
    """
    Fingerprint of a cluster list: ids, counts, trends, baselines and member ids.

    Order-sensitive, so it also pins the ranking.
    """
    payload = []
    for cluster in clusters:
        row = cluster.to_row()
        row["member_ids"] = [r.id for r in cluster.members]
        payload.append(row)
    return hash_string(json.dumps(payload, sort_keys=True, default=str))


def get_git_commit() -> Optional[str]:
    """Current commit hash, or None outside a git checkout."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return None
    if result.returncode == 0:
        return result.stdout.strip()
    return None


def create_metadata_sidecar(
    output_path: Union[str, Path],
    inputs: Dict[str, str],
    config: Dict[str, Any],
    run_id: str,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the provenance record for an output file.

    Missing inputs are recorded with hash None rather than failing, since
    the baseline history is optional.
    """
    input_hashes = {}
    for name, path in inputs.items():
        path = Path(path)
        input_hashes[name] = {
            "path": str(path),
            "hash": hash_file(path) if path.exists() else None,
        }

    metadata = {
        "output_file": str(output_path),
        "run_id": run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "inputs": input_hashes,
        "config_digest": hash_dict(config),
        "git_commit": get_git_commit(),
        "versions": get_versions(),
    }
    if extra:
        metadata["extra"] = extra
    return metadata


def sidecar_path_for(output_path: Union[str, Path], metadata_dir: Optional[Path] = None) -> Path:
    metadata_dir = metadata_dir or METADATA_DIR
    return Path(metadata_dir) / f"{Path(output_path).stem}_metadata.json"


def write_metadata_sidecar(
    output_path: Union[str, Path],
    inputs: Dict[str, str],
    config: Dict[str, Any],
    run_id: str,
    extra: Optional[Dict[str, Any]] = None,
    metadata_dir: Optional[Path] = None,
) -> Path:
    """Write the sidecar JSON for an output and return its path."""
    sidecar = sidecar_path_for(output_path, metadata_dir)
    atomic_write_json(create_metadata_sidecar(output_path, inputs, config, run_id, extra), sidecar)
    return sidecar


def read_metadata_sidecar(
    output_path: Union[str, Path],
    metadata_dir: Optional[Path] = None,
) -> Optional[Dict[str, Any]]:
    sidecar = sidecar_path_for(output_path, metadata_dir)
    if sidecar.exists():
        return read_json(sidecar)
    return None
