"""
Canonical path resolution for the Nuisance Watch project.

Single source of truth for every path the pipeline scripts read or write.
The project root is found by walking up to `.project-root` (or, failing
that, `pyproject.toml` / `.git`).
"""

from pathlib import Path
from typing import Optional

ROOT_MARKERS = [".project-root", "pyproject.toml", ".git"]


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """
    Find the project root by searching upward for marker files.

    Args:
        start_path: Starting directory. Defaults to this file's directory.

    Returns:
        Path to the project root.

    Raises:
        FileNotFoundError: If no marker is found up to the filesystem root.
    """
    if start_path is None:
        start_path = Path(__file__).resolve().parent

    start_path = Path(start_path).resolve()
    for candidate in [start_path, *start_path.parents]:
        for marker in ROOT_MARKERS:
            if (candidate / marker).exists():
                return candidate

    raise FileNotFoundError(
        f"Could not find project root. Searched for markers {ROOT_MARKERS} "
        f"starting from {start_path}"
    )


# =============================================================================
# Canonical paths (resolved at import time)
# =============================================================================

PROJECT_ROOT = find_project_root()

CONFIG_DIR = PROJECT_ROOT / "configs"
PARAMS_FILE = CONFIG_DIR / "params.yml"

DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
RAW_311_DIR = RAW_DIR / "311_complaints"
PROCESSED_DIR = DATA_DIR / "processed"

NUISANCE_DIR = PROCESSED_DIR / "nuisance"
HISTORY_DIR = NUISANCE_DIR / "history"
METADATA_DIR = PROCESSED_DIR / "metadata"

LOGS_DIR = PROJECT_ROOT / "logs"

SRC_DIR = PROJECT_ROOT / "src"
SCRIPTS_DIR = PROJECT_ROOT / "scripts"
TESTS_DIR = PROJECT_ROOT / "tests"


def ensure_dirs_exist() -> None:
    """Create the data and log directories the scripts write into."""
    for d in [RAW_311_DIR, NUISANCE_DIR, HISTORY_DIR, METADATA_DIR, LOGS_DIR]:
        d.mkdir(parents=True, exist_ok=True)


if __name__ == "__main__":
    print(f"PROJECT_ROOT:  {PROJECT_ROOT}")
    print(f"RAW_311_DIR:   {RAW_311_DIR}")
    print(f"NUISANCE_DIR:  {NUISANCE_DIR}")
    print(f"CONFIG_DIR:    {CONFIG_DIR}")
    print(f"LOGS_DIR:      {LOGS_DIR}")
