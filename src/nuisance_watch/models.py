"""
Core data types for the Nuisance Watch engine.

Records are immutable once ingested. Clusters are created by the aggregator,
annotated once by the trend classifier and discarded at the end of the run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd


class RecordError(Exception):
    """Raised when a record is structurally malformed (fatal to the batch)."""
    pass


class ConfigurationError(Exception):
    """Raised when a static registry or parameter set is unusable."""
    pass


class Severity(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """Sort position, High first."""
        return _SEVERITY_RANK[self]


class Trend(str, Enum):
    SPIKE = "spike"
    ELEVATED = "elevated"
    NORMAL = "normal"

    @property
    def rank(self) -> int:
        """Signal strength, spike highest."""
        return _TREND_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}
_TREND_RANK = {Trend.SPIKE: 2, Trend.ELEVATED: 1, Trend.NORMAL: 0}


def _clean_text(value: Any) -> str:
    """Source rows carry NaN / None for blank cells."""
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _clean_text(value)
    return text or None


def _optional_float(value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return None
    return float(number)


def _optional_timestamp(value: Any) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def join_cross_streets(cross_1: Any, cross_2: Any) -> Optional[str]:
    """Combine the two cross-street columns into "A and B" (or whichever exists)."""
    first = _clean_text(cross_1)
    second = _clean_text(cross_2)
    if first and second:
        return f"{first} and {second}"
    return first or second or None


@dataclass(frozen=True)
class RawEventRecord:
    """One complaint as delivered by the open-data source."""
    id: str
    created_at: datetime
    type_label: str
    address: str = ""
    street: str = ""
    zip_code: str = ""
    closed_at: Optional[datetime] = None
    descriptor: Optional[str] = None
    cross_streets: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    borough: Optional[str] = None
    city: Optional[str] = None
    status: Optional[str] = None
    resolution_description: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise RecordError(f"Record is missing its identifier: {self.id!r}")
        if not isinstance(self.created_at, datetime):
            raise RecordError(f"Record {self.id} is missing a valid created_at timestamp")

    @classmethod
    def from_source_row(cls, row: Mapping[str, Any]) -> "RawEventRecord":
        """
        Build a record from a 311 Service Request row (Socrata column names).

        Raises:
            RecordError: If unique_key or created_date is absent or unparseable
        """
        return cls(
            id=_clean_text(row.get("unique_key")),
            created_at=_optional_timestamp(row.get("created_date")),
            closed_at=_optional_timestamp(row.get("closed_date")),
            type_label=_clean_text(row.get("complaint_type")),
            descriptor=_optional_text(row.get("descriptor")),
            address=_clean_text(row.get("incident_address")),
            street=_clean_text(row.get("street_name")),
            cross_streets=join_cross_streets(
                row.get("cross_street_1"), row.get("cross_street_2")
            ),
            zip_code=_clean_text(row.get("incident_zip")),
            latitude=_optional_float(row.get("latitude")),
            longitude=_optional_float(row.get("longitude")),
            borough=_optional_text(row.get("borough")),
            city=_optional_text(row.get("city")),
            status=_optional_text(row.get("status")),
            resolution_description=_optional_text(row.get("resolution_description")),
        )


@dataclass
class ComplaintCluster:
    """
    Records sharing a category and an (anonymized) location.

    `count` is derived from `members`, so the two can never disagree.
    """
    id: str
    display_location: str
    category: str
    severity: Severity
    neighborhood: str
    neighborhood_id: str
    is_commercial: bool
    location: str = ""
    street: str = ""
    members: List[RawEventRecord] = field(default_factory=list)
    trend: Trend = Trend.NORMAL
    baseline_count: Optional[float] = None
    percent_change: Optional[int] = None

    @property
    def count(self) -> int:
        return len(self.members)

    def add(self, record: RawEventRecord) -> None:
        self.members.append(record)

    def sample_descriptors(self, limit: int = 5) -> List[str]:
        """Distinct descriptors (or type labels) in member order."""
        seen: List[str] = []
        for record in self.members:
            label = record.descriptor or record.type_label
            if label and label not in seen:
                seen.append(label)
            if len(seen) >= limit:
                break
        return seen

    def to_row(self) -> Dict[str, Any]:
        """Flatten for tabular snapshots (members excluded)."""
        return {
            "cluster_id": self.id,
            "category": self.category,
            "severity": self.severity.value,
            "neighborhood": self.neighborhood,
            "neighborhood_id": self.neighborhood_id,
            "display_location": self.display_location,
            "location": self.location,
            "street": self.street,
            "is_commercial": self.is_commercial,
            "count": self.count,
            "trend": self.trend.value,
            "baseline_count": self.baseline_count,
            "percent_change": self.percent_change,
        }


@dataclass
class BatchStats:
    """
    Per-run counters. Filtered records only ever show up here, never as errors.
    """
    records_scanned: int = 0
    records_clustered: int = 0
    dropped_unclassified: int = 0
    dropped_unknown_zip: int = 0
    dropped_unlocatable: int = 0
    clusters_detected: int = 0
    clusters_significant: int = 0
    by_category: Dict[str, int] = field(default_factory=dict)
    by_severity: Dict[str, int] = field(default_factory=dict)
    by_trend: Dict[str, int] = field(default_factory=dict)

    @property
    def records_dropped(self) -> int:
        return self.dropped_unclassified + self.dropped_unknown_zip + self.dropped_unlocatable

    def seed(self, category_names: List[str]) -> None:
        """Start every tally at zero so absent categories still report."""
        self.by_category = {name: 0 for name in category_names}
        self.by_severity = {s.value: 0 for s in Severity}
        self.by_trend = {t.value: 0 for t in Trend}

    def tally(self, clusters: List["ComplaintCluster"]) -> None:
        for cluster in clusters:
            self.by_category[cluster.category] = self.by_category.get(cluster.category, 0) + 1
            self.by_severity[cluster.severity.value] = self.by_severity.get(cluster.severity.value, 0) + 1
            self.by_trend[cluster.trend.value] = self.by_trend.get(cluster.trend.value, 0) + 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "records_scanned": self.records_scanned,
            "records_clustered": self.records_clustered,
            "records_dropped": self.records_dropped,
            "dropped_unclassified": self.dropped_unclassified,
            "dropped_unknown_zip": self.dropped_unknown_zip,
            "dropped_unlocatable": self.dropped_unlocatable,
            "clusters_detected": self.clusters_detected,
            "clusters_significant": self.clusters_significant,
            "by_category": dict(self.by_category),
            "by_severity": dict(self.by_severity),
            "by_trend": dict(self.by_trend),
        }
