"""
Schema validation for raw complaint frames and cluster snapshots.

Raw frames are validated before any record is built, so a malformed batch
fails as a whole instead of producing undercounted clusters. Snapshots are
validated on write and on read so baseline history never drifts.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import pandas as pd

from nuisance_watch.models import Severity, Trend


@dataclass
class ColumnSpec:
    """Specification for a single column."""
    name: str
    dtype: Optional[str] = None  # "string", "int", "float", "bool", "datetime"
    nullable: bool = True
    unique: bool = False
    allowed_values: Optional[Set[Any]] = None
    min_value: Optional[float] = None


@dataclass
class Schema:
    name: str
    columns: List[ColumnSpec]
    required_columns: List[str] = field(default_factory=list)
    min_rows: int = 0

    def __post_init__(self):
        if not self.required_columns:
            self.required_columns = [c.name for c in self.columns if not c.nullable]


class SchemaError(Exception):
    """Raised when a frame does not match its schema."""
    pass


RAW_RECORD_SCHEMA = Schema(
    name="raw_311_records",
    columns=[
        ColumnSpec("unique_key", nullable=False),
        ColumnSpec("created_date", dtype="datetime", nullable=False),
        ColumnSpec("complaint_type", dtype="string"),
        ColumnSpec("incident_zip"),
    ],
    required_columns=["unique_key", "created_date", "complaint_type", "incident_zip"],
)

CLUSTER_SNAPSHOT_SCHEMA = Schema(
    name="cluster_snapshot",
    columns=[
        ColumnSpec("run_date", dtype="datetime", nullable=False),
        ColumnSpec("cluster_id", dtype="string", nullable=False),
        ColumnSpec("category", dtype="string", nullable=False),
        ColumnSpec("severity", nullable=False, allowed_values={s.value for s in Severity}),
        ColumnSpec("neighborhood_id", dtype="string", nullable=False),
        ColumnSpec("display_location", dtype="string", nullable=False),
        ColumnSpec("is_commercial", dtype="bool", nullable=False),
        ColumnSpec("count", dtype="int", nullable=False, min_value=1),
        ColumnSpec("trend", nullable=False, allowed_values={t.value for t in Trend}),
        ColumnSpec("baseline_count", dtype="float", min_value=0),
        ColumnSpec("percent_change", dtype="float"),
    ],
)


def _dtype_errors(col: pd.Series, spec: ColumnSpec) -> List[str]:
    checks = {
        "int": pd.api.types.is_integer_dtype,
        "float": pd.api.types.is_numeric_dtype,
        "bool": pd.api.types.is_bool_dtype,
        "datetime": pd.api.types.is_datetime64_any_dtype,
        "string": lambda c: pd.api.types.is_string_dtype(c) or pd.api.types.is_object_dtype(c),
    }
    if spec.dtype is None or spec.dtype not in checks:
        return []
    if len(col) and not checks[spec.dtype](col):
        return [f"Column {spec.name}: expected {spec.dtype}, got {col.dtype}"]
    return []


def validate_column(df: pd.DataFrame, spec: ColumnSpec) -> List[str]:
    """Validate one column; returns error messages (empty if valid)."""
    if spec.name not in df.columns:
        return [] if spec.nullable else [f"Missing column: {spec.name}"]

    col = df[spec.name]
    errors = _dtype_errors(col, spec)

    if not spec.nullable:
        blank = col.isna()
        if pd.api.types.is_object_dtype(col) or pd.api.types.is_string_dtype(col):
            blank = blank | (col.astype(str).str.strip() == "")
        if blank.any():
            errors.append(f"Column {spec.name}: {int(blank.sum())} missing values not allowed")

    if spec.unique and col.duplicated().any():
        errors.append(f"Column {spec.name}: {int(col.duplicated().sum())} duplicate values not allowed")

    if spec.allowed_values is not None:
        invalid = ~col.isin(spec.allowed_values) & col.notna()
        if invalid.any():
            errors.append(f"Column {spec.name}: invalid values {list(col[invalid].unique()[:5])}")

    if spec.min_value is not None and pd.api.types.is_numeric_dtype(col):
        if ((col < spec.min_value) & col.notna()).any():
            errors.append(f"Column {spec.name}: values below min {spec.min_value}")

    return errors


def validate_schema(
    df: pd.DataFrame,
    schema: Schema,
    context: str = "",
    raise_on_error: bool = True,
) -> List[str]:
    """
    Validate a DataFrame against a schema.

    Args:
        df: Frame to check
        schema: Schema specification
        context: Optional context appended to messages
        raise_on_error: Raise SchemaError instead of returning the errors

    Returns:
        List of error messages (empty if valid)

    Raises:
        SchemaError: If raise_on_error and validation fails
    """
    errors = []
    ctx = f" ({context})" if context else ""

    if len(df) < schema.min_rows:
        errors.append(f"Expected at least {schema.min_rows} rows, got {len(df)}{ctx}")

    missing = set(schema.required_columns) - set(df.columns)
    if missing:
        errors.append(f"Missing required columns: {sorted(missing)}{ctx}")

    for spec in schema.columns:
        errors.extend(validate_column(df, spec))

    if errors and raise_on_error:
        raise SchemaError(f"Schema validation failed for '{schema.name}':\n" + "\n".join(errors))

    return errors


SCHEMAS: Dict[str, Schema] = {
    RAW_RECORD_SCHEMA.name: RAW_RECORD_SCHEMA,
    CLUSTER_SNAPSHOT_SCHEMA.name: CLUSTER_SNAPSHOT_SCHEMA,
}


def get_schema(name: str) -> Schema:
    if name not in SCHEMAS:
        raise KeyError(f"Unknown schema: {name}. Available: {list(SCHEMAS.keys())}")
    return SCHEMAS[name]
