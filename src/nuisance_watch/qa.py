"""
Quality gates for batch output.

Run before anything is written: a result that breaks one of these is not
published, since an undercounted or mislocated cluster is worse than none.
"""

from typing import Dict, List

from nuisance_watch.models import ComplaintCluster
from nuisance_watch.ranking import rank_key
from nuisance_watch.roundup import RoundupDecision


class QAError(Exception):
    """Raised when batch output fails an invariant check."""
    pass


def check_cluster_invariants(
    clusters: List[ComplaintCluster],
    threshold: int,
) -> List[str]:
    """
    Check per-cluster and list-level invariants.

    Returns:
        List of violation messages (empty if clean)
    """
    errors = []
    seen_ids = set()

    for cluster in clusters:
        if cluster.count < 1:
            errors.append(f"{cluster.id}: empty cluster")
        if cluster.count != len(cluster.members):
            errors.append(f"{cluster.id}: count {cluster.count} != {len(cluster.members)} members")
        if not cluster.display_location.strip():
            errors.append(f"{cluster.id}: empty display location")
        if cluster.count < threshold:
            errors.append(f"{cluster.id}: count {cluster.count} below threshold {threshold}")
        if cluster.id in seen_ids:
            errors.append(f"{cluster.id}: duplicate cluster id")
        seen_ids.add(cluster.id)

    keys = [rank_key(c) for c in clusters]
    if keys != sorted(keys):
        errors.append("Clusters are not in rank order")

    return errors


def check_decision(decision: RoundupDecision, clusters: List[ComplaintCluster]) -> List[str]:
    """Every cluster lands in exactly one bucket; roundup buckets hold one neighborhood."""
    errors = []

    placed: Dict[str, int] = {}
    for cluster in decision.individual:
        placed[cluster.id] = placed.get(cluster.id, 0) + 1
    for hood_id, members in decision.roundups.items():
        if len(members) < 2:
            errors.append(f"Roundup {hood_id} has {len(members)} cluster(s)")
        for cluster in members:
            placed[cluster.id] = placed.get(cluster.id, 0) + 1
            if cluster.neighborhood_id != hood_id:
                errors.append(f"{cluster.id} filed under roundup {hood_id}")

    expected = {c.id for c in clusters}
    missing = expected - set(placed)
    if missing:
        errors.append(f"Clusters missing from decision: {sorted(missing)}")
    doubled = [cid for cid, n in placed.items() if n > 1]
    if doubled:
        errors.append(f"Clusters placed more than once: {sorted(doubled)}")

    return errors


def assert_batch_output(
    clusters: List[ComplaintCluster],
    decision: RoundupDecision,
    threshold: int,
    logger=None,
) -> Dict[str, int]:
    """
    Raise QAError if the batch output breaks any invariant.

    Returns:
        Summary counts for logging
    """
    errors = check_cluster_invariants(clusters, threshold) + check_decision(decision, clusters)
    if errors:
        if logger:
            logger.error(f"QA failed with {len(errors)} violation(s)", extra={"violations": errors})
        raise QAError("Batch output failed QA:\n" + "\n".join(errors))

    summary = {
        "clusters": len(clusters),
        "individual": len(decision.individual),
        "roundup_neighborhoods": len(decision.roundups),
        "members": sum(c.count for c in clusters),
    }
    if logger:
        logger.info(f"QA passed: {summary}")
    return summary
