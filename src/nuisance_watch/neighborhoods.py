"""
Zip code to neighborhood resolution.

The coverage table lists each neighborhood with the zips it draws on. Zips
shared by several neighborhoods resolve to the first one listed.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence

from nuisance_watch.models import ConfigurationError


@dataclass(frozen=True)
class Neighborhood:
    key: str
    id: str


# Ordered: first listing of a shared zip wins.
NYC_NEIGHBORHOOD_ZIPS: Mapping[str, Sequence[str]] = MappingProxyType({
    "Chelsea": ("10001", "10011"),
    "Greenwich Village": ("10003", "10012", "10014"),
    "West Village": ("10014",),
    "Hudson Yards": ("10001", "10018"),
    "Meatpacking District": ("10014",),
    "FiDi": ("10004", "10005", "10006", "10007", "10038"),
    "Upper East Side": ("10021", "10028", "10065", "10075", "10128"),
    "Upper West Side": ("10023", "10024", "10025"),
    "Williamsburg": ("11211", "11249"),
    "Dumbo": ("11201",),
    "Cobble Hill": ("11201", "11231"),
    "Park Slope": ("11215", "11217"),
    "Tribeca": ("10007", "10013"),
    "SoHo": ("10012", "10013"),
    "NoHo": ("10003", "10012"),
    "Nolita": ("10012", "10013"),
    "Brooklyn West": ("11201", "11231", "11215", "11217"),
    "Tribeca Combo": ("10007", "10013"),
})

_ZIP_PLUS_FOUR = re.compile(r"^(\d{5})-\d{4}$")


def neighborhood_id(key: str, city_prefix: str = "nyc") -> str:
    """Slug a neighborhood key: Upper East Side -> nyc-upper-east-side."""
    slug = re.sub(r"\s+", "-", key.strip().lower())
    return f"{city_prefix}-{slug}"


def normalize_zip(zip_code: Optional[str]) -> str:
    if zip_code is None:
        return ""
    value = str(zip_code).strip().upper()
    match = _ZIP_PLUS_FOUR.match(value)
    if match:
        return match.group(1)
    return value


class NeighborhoodZipIndex:
    """Read-only zip -> Neighborhood lookup."""

    def __init__(
        self,
        neighborhood_zips: Mapping[str, Sequence[str]] = NYC_NEIGHBORHOOD_ZIPS,
        city_prefix: str = "nyc",
    ):
        index: Dict[str, Neighborhood] = {}
        for key, zips in neighborhood_zips.items():
            hood = Neighborhood(key=key, id=neighborhood_id(key, city_prefix))
            for zip_code in zips:
                index.setdefault(normalize_zip(zip_code), hood)

        if not index:
            raise ConfigurationError("Neighborhood zip index is empty")

        self._index = MappingProxyType(index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, zip_code: str) -> bool:
        return self.resolve(zip_code) is not None

    def resolve(self, zip_code: Optional[str]) -> Optional[Neighborhood]:
        """Return the neighborhood for a zip, or None if it is not covered."""
        return self._index.get(normalize_zip(zip_code))

    def zips(self) -> List[str]:
        return sorted(self._index)
