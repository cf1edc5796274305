"""
Shared fixtures: a complaint factory and the default registries.
"""

from datetime import datetime
from itertools import count

import pytest

from nuisance_watch.categories import CategoryRegistry
from nuisance_watch.models import ComplaintCluster, RawEventRecord, Severity
from nuisance_watch.neighborhoods import NeighborhoodZipIndex
from nuisance_watch.time_utils import NYC_TZ


@pytest.fixture
def categories():
    return CategoryRegistry()


@pytest.fixture
def zip_index():
    return NeighborhoodZipIndex()


@pytest.fixture
def make_record():
    """Factory for RawEventRecord with sensible defaults and unique ids."""
    ids = count(1)

    def _make(
        type_label="Noise - Residential",
        address="123 BLEECKER STREET",
        street="BLEECKER STREET",
        zip_code="10012",
        **kwargs,
    ):
        kwargs.setdefault("id", f"rec-{next(ids)}")
        kwargs.setdefault("created_at", NYC_TZ.localize(datetime(2026, 10, 15, 23, 30)))
        kwargs.setdefault("descriptor", "Loud Music/Party")
        return RawEventRecord(
            type_label=type_label,
            address=address,
            street=street,
            zip_code=zip_code,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_cluster(make_record):
    """Factory for a ComplaintCluster with `n` synthetic members."""

    def _make(
        cluster_id="cluster-test",
        n=5,
        severity=Severity.MEDIUM,
        category="Noise - Residential",
        neighborhood="Greenwich Village",
        neighborhood_id="nyc-greenwich-village",
        display_location="100 Block of Bleecker Street",
        is_commercial=False,
    ):
        cluster = ComplaintCluster(
            id=cluster_id,
            display_location=display_location,
            category=category,
            severity=severity,
            neighborhood=neighborhood,
            neighborhood_id=neighborhood_id,
            is_commercial=is_commercial,
        )
        for _ in range(n):
            cluster.add(make_record(type_label=category))
        return cluster

    return _make
