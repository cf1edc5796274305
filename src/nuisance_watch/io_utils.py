"""
I/O helpers: atomic writes and simple readers.

Every output is written to a temp file in the target directory and then
moved into place with Path.replace, so a failed run never leaves a
half-written cluster table behind.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
import yaml


def _temp_sibling(target_path: Path, suffix: str) -> Path:
    target_path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(
        suffix=suffix,
        prefix=f".{target_path.stem}_",
        dir=target_path.parent,
    )
    os.close(fd)
    return Path(temp_path)


@contextmanager
def atomic_write(
    target_path: Union[str, Path],
    mode: str = "w",
    suffix: Optional[str] = None,
):
    """
    Context manager yielding a file handle whose contents replace
    `target_path` only if the block finishes without raising.

    Example:
        with atomic_write("roundups.json") as f:
            f.write("{}")
    """
    target_path = Path(target_path)
    temp_path = _temp_sibling(target_path, suffix or target_path.suffix or ".tmp")
    encoding = None if "b" in mode else "utf-8"

    try:
        with open(temp_path, mode, encoding=encoding) as f:
            yield f
        temp_path.replace(target_path)
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_df(
    df: pd.DataFrame,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write a DataFrame as CSV or Parquet (chosen by extension).

    Raises:
        ValueError: For any other extension
    """
    target_path = Path(target_path)
    suffix = target_path.suffix.lower()
    if suffix not in (".csv", ".parquet"):
        raise ValueError(f"Unsupported format: {suffix}")

    temp_path = _temp_sibling(target_path, suffix)
    try:
        if suffix == ".parquet":
            df.to_parquet(temp_path, **kwargs)
        else:
            df.to_csv(temp_path, **kwargs)
        temp_path.replace(target_path)
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_json(
    data: Any,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    kwargs.setdefault("indent", 2)
    kwargs.setdefault("default", str)

    with atomic_write(target_path, mode="w", suffix=".json") as f:
        json.dump(data, f, **kwargs)


def atomic_write_yaml(
    data: Any,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    kwargs.setdefault("default_flow_style", False)
    kwargs.setdefault("sort_keys", False)

    with atomic_write(target_path, mode="w", suffix=".yml") as f:
        yaml.safe_dump(data, f, **kwargs)


def read_yaml(path: Union[str, Path]) -> dict:
    """Read a YAML file (empty file -> {})."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def read_json(path: Union[str, Path]) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_df(
    path: Union[str, Path],
    **kwargs,
) -> pd.DataFrame:
    """
    Read a DataFrame from CSV or Parquet.

    Raises:
        ValueError: For any other extension
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".parquet":
        return pd.read_parquet(path, **kwargs)
    elif suffix == ".csv":
        return pd.read_csv(path, **kwargs)
    else:
        raise ValueError(f"Unsupported format: {suffix}")


def latest_file(directory: Union[str, Path], pattern: str) -> Optional[Path]:
    """Most recently modified file matching `pattern`, or None."""
    candidates = list(Path(directory).glob(pattern))
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)
