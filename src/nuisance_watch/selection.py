"""
Helpers for the narrative and publishing collaborators.

Which clusters get a story, what label the article carries, its slug, and
the brief handed to the text generator. Nothing here calls out to a model.
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from nuisance_watch.categories import CategoryRegistry
from nuisance_watch.models import ComplaintCluster, RawEventRecord, Severity, Trend
from nuisance_watch.roundup import RoundupGroup
from nuisance_watch.time_utils import now_nyc

MAX_STORIES = 10
SLUG_LOCATION_LENGTH = 30


def select_story_candidates(
    clusters: List[ComplaintCluster],
    max_stories: int = MAX_STORIES,
) -> List[ComplaintCluster]:
    """Ranked clusters that spike or are High severity, capped at max_stories."""
    picked = [c for c in clusters if c.trend == Trend.SPIKE or c.severity == Severity.HIGH]
    return picked[:max_stories]


def category_label(trend: Trend, severity: Severity) -> str:
    if trend == Trend.SPIKE and severity == Severity.HIGH:
        return "Community Alert"
    if trend == Trend.SPIKE:
        return "Nuisance Watch"
    return "Block Watch"


def story_slug(category: str, display_location: str, run_date: date) -> str:
    """nuisance-noise---commercial-80-wooster-st-2026-10-19"""
    clean_category = re.sub(r"[^a-z]", "-", category.lower())
    clean_location = re.sub(r"[^a-z0-9]", "-", display_location.lower())[:SLUG_LOCATION_LENGTH]
    return f"nuisance-{clean_category}-{clean_location}-{run_date.isoformat()}"


def fallback_headline(cluster: ComplaintCluster, categories: CategoryRegistry) -> str:
    return categories.get(cluster.category).render_headline(cluster.count, cluster.display_location)


def story_brief(
    cluster: ComplaintCluster,
    categories: CategoryRegistry,
    window_days: int = 7,
) -> Dict[str, Any]:
    """Structured context for one per-cluster story."""
    category = categories.get(cluster.category)
    return {
        "cluster_id": cluster.id,
        "category": cluster.category,
        "signal": category.signal_label,
        "severity": cluster.severity.value,
        "trend": cluster.trend.value,
        "percent_change": cluster.percent_change,
        "baseline_count": cluster.baseline_count,
        "display_location": cluster.display_location,
        "street": cluster.street,
        "neighborhood": cluster.neighborhood,
        "neighborhood_id": cluster.neighborhood_id,
        "complaint_count": cluster.count,
        "window_days": window_days,
        "is_commercial": cluster.is_commercial,
        "sample_descriptors": cluster.sample_descriptors(5),
        "headline_fallback": category.render_headline(cluster.count, cluster.display_location),
        "category_label": category_label(cluster.trend, cluster.severity),
    }


def roundup_brief(group: RoundupGroup, window_days: int = 7) -> Dict[str, Any]:
    """Structured context for one neighborhood roundup."""
    return {
        "cluster_id": group.id,
        "category": group.lead_category,
        "severity": group.severity.value,
        "trend": group.trend.value,
        "neighborhood": group.neighborhood,
        "neighborhood_id": group.neighborhood_id,
        "complaint_count": group.total_complaints,
        "hotspot_count": group.hotspot_count,
        "window_days": window_days,
        "hotspots": [
            {
                "display_location": c.display_location,
                "count": c.count,
                "category": c.category,
                "is_commercial": c.is_commercial,
            }
            for c in group.by_count()
        ],
        "sample_descriptors": group.sample_descriptors(),
        "headline_fallback": group.headline,
        "category_label": category_label(group.trend, group.severity),
    }


def filter_briefs(
    briefs: Iterable[Dict[str, Any]],
    category: Optional[str] = None,
    neighborhood_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Keep briefs for one category and/or one neighborhood; None matches all."""
    return [
        b for b in briefs
        if (category is None or b["category"] == category)
        and (neighborhood_id is None or b["neighborhood_id"] == neighborhood_id)
    ]


SAMPLE_CLUSTER_SIZE = 7


def sample_cluster(now: Optional[datetime] = None) -> ComplaintCluster:
    """
    A fixed High/spike commercial-noise cluster for exercising the
    downstream writers without live data.

    Args:
        now: Reference time for the member timestamps (default: now in NYC)

    Returns:
        ComplaintCluster of 7 complaints, one per day going back from now
    """
    now = now or now_nyc()
    members = [
        RawEventRecord(
            id=f"SAMPLE-{i}",
            created_at=now - timedelta(days=i),
            type_label="Noise - Commercial",
            descriptor="Loud Music/Party",
            address="123 Bleecker Street",
            street="Bleecker Street",
            zip_code="10014",
            city="New York",
            borough="Manhattan",
            status="Open",
        )
        for i in range(SAMPLE_CLUSTER_SIZE)
    ]
    return ComplaintCluster(
        id="sample-cluster-noise-commercial",
        display_location="123 Bleecker Street",
        location="123 Bleecker Street",
        street="Bleecker Street",
        category="Noise - Commercial",
        severity=Severity.HIGH,
        neighborhood="West Village",
        neighborhood_id="nyc-west-village",
        is_commercial=True,
        members=members,
        trend=Trend.SPIKE,
        baseline_count=2.0,
        percent_change=250,
    )
