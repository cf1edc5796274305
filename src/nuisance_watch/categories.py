"""
Complaint category registry and type-label classification.

Each canonical category absorbs a set of raw 311 complaint_type strings.
Classification walks the registry in its fixed order and returns the first
category with a pattern contained (case-insensitively) in the label, so
specific patterns ("Noise - Commercial") must be listed before generic ones
("Noise").
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from nuisance_watch.models import ConfigurationError, Severity


@dataclass(frozen=True)
class CategoryConfig:
    """Static configuration for one canonical category."""
    name: str
    source_type_patterns: Tuple[str, ...]
    severity: Severity
    is_commercial: bool
    signal_label: str
    headline_template: str

    def matches(self, type_label: str) -> bool:
        label = type_label.lower()
        return any(pattern.lower() in label for pattern in self.source_type_patterns)

    def render_headline(self, count: int, location: str) -> str:
        return (
            self.headline_template
            .replace("{count}", str(count))
            .replace("{location}", location)
        )


DEFAULT_CATEGORIES: Tuple[CategoryConfig, ...] = (
    CategoryConfig(
        name="Noise - Commercial",
        source_type_patterns=("Noise - Commercial", "Noise - Helicopter", "Noise - Vehicle"),
        severity=Severity.HIGH,
        is_commercial=True,
        signal_label="Nightlife friction",
        headline_template="Noise Watch: {count} complaints filed near {location}",
    ),
    CategoryConfig(
        name="Noise - Residential",
        source_type_patterns=("Noise - Residential", "Noise - Street/Sidewalk", "Noise"),
        severity=Severity.MEDIUM,
        is_commercial=False,
        signal_label="Neighbor friction",
        headline_template="Block Watch: Noise complaints spike on {location}",
    ),
    CategoryConfig(
        name="Rodent",
        source_type_patterns=("Rodent", "Rat Sighting", "Mouse Sighting"),
        severity=Severity.HIGH,
        is_commercial=False,
        signal_label="Sanitation decline",
        headline_template="Sanitation Alert: Pest reports surge near {location}",
    ),
    CategoryConfig(
        name="Pest",
        source_type_patterns=("Harboring Bees/Wasps", "Mosquitoes", "Bed Bugs"),
        severity=Severity.MEDIUM,
        is_commercial=False,
        signal_label="Building condition",
        headline_template="Pest Watch: {count} reports near {location}",
    ),
    CategoryConfig(
        name="Homeless Encampment",
        source_type_patterns=("Homeless Encampment", "Homeless Person Assistance"),
        severity=Severity.HIGH,
        is_commercial=False,
        signal_label="Safety concern",
        headline_template="Community Alert: Encampment concerns on {location}",
    ),
    CategoryConfig(
        name="Sidewalk Condition",
        source_type_patterns=("Sidewalk Condition", "Damaged Tree", "Overgrown Tree/Branches"),
        severity=Severity.LOW,
        is_commercial=False,
        signal_label="Infrastructure neglect",
        headline_template="Infrastructure Watch: Sidewalk issues on {location}",
    ),
    CategoryConfig(
        name="Trash",
        source_type_patterns=("Dirty Conditions", "Sanitation Condition", "Missed Collection"),
        severity=Severity.MEDIUM,
        is_commercial=False,
        signal_label="Sanitation service",
        headline_template="Sanitation Spike: Trash complaints surge on {location}",
    ),
    CategoryConfig(
        name="Graffiti",
        source_type_patterns=("Graffiti", "Illegal Posting"),
        severity=Severity.LOW,
        is_commercial=False,
        signal_label="Vandalism",
        headline_template="Street Watch: Graffiti reports on {location}",
    ),
    CategoryConfig(
        name="Illegal Dumping",
        source_type_patterns=("Illegal Dumping", "Derelict Vehicles", "Derelict Bicycle"),
        severity=Severity.MEDIUM,
        is_commercial=False,
        signal_label="Dumping activity",
        headline_template="Dumping Alert: Illegal waste reported on {location}",
    ),
)


class CategoryRegistry:
    """
    Ordered, read-only set of category configurations.

    Usage:
        registry = CategoryRegistry()
        category = registry.classify("Noise - Commercial")
    """

    def __init__(self, categories: Iterable[CategoryConfig] = DEFAULT_CATEGORIES):
        self._categories = tuple(categories)
        if not self._categories:
            raise ConfigurationError("Category registry is empty")

        names = [c.name for c in self._categories]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ConfigurationError(f"Duplicate category names: {sorted(duplicates)}")

        self._by_name = {c.name: c for c in self._categories}

    def __iter__(self):
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self._categories]

    def get(self, name: str) -> CategoryConfig:
        if name not in self._by_name:
            raise KeyError(f"Unknown category: {name}. Available: {self.names}")
        return self._by_name[name]

    def classify(self, type_label: Optional[str]) -> Optional[CategoryConfig]:
        """
        Map a raw complaint_type to its canonical category.

        Returns None for labels outside the tracked categories; the caller
        drops those records.
        """
        if not type_label:
            return None
        for category in self._categories:
            if category.matches(type_label):
                return category
        return None

    def all_source_types(self) -> List[str]:
        """Every raw complaint_type the registry tracks, in registry order."""
        return [p for c in self._categories for p in c.source_type_patterns]

    @classmethod
    def from_config(cls, entries: List[Dict[str, Any]]) -> "CategoryRegistry":
        """
        Build a registry from YAML-shaped entries.

        Each entry needs: name, types, severity, signal, headline_template;
        `commercial` defaults to False.

        Raises:
            ConfigurationError: On missing keys or unknown severities
        """
        categories = []
        for entry in entries or []:
            try:
                severity = Severity(entry["severity"])
            except ValueError:
                raise ConfigurationError(
                    f"Unknown severity {entry.get('severity')!r} for category {entry.get('name')!r}"
                )
            except KeyError as e:
                raise ConfigurationError(f"Category entry missing key {e}: {entry}")

            try:
                categories.append(CategoryConfig(
                    name=entry["name"],
                    source_type_patterns=tuple(entry["types"]),
                    severity=severity,
                    is_commercial=bool(entry.get("commercial", False)),
                    signal_label=entry["signal"],
                    headline_template=entry["headline_template"],
                ))
            except KeyError as e:
                raise ConfigurationError(f"Category entry missing key {e}: {entry}")

        return cls(categories)
