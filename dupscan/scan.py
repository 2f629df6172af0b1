"""Pairwise duplicate scan over all active project records."""

import logging
from collections.abc import Collection, Iterable
from pathlib import Path
from typing import Optional

from dupscan import (
    HIGH,
    LEVEL_ORDER,
    MEDIUM,
    Classification,
    DuplicateGroup,
    DuplicateWarning,
    ProjectRecord,
    SimilarityScore,
    pair_key,
)
from dupscan.classifier import classify_pair, evaluate_pair
from dupscan.database import session_scope
from dupscan.normalize import to_comparison_record
from dupscan.repository import ProjectRepository, ReviewLedger
from dupscan.scoring import score_pair
from dupscan.settings import DEFAULT_SETTINGS, ScannerSettings, SettingsStore

log = logging.getLogger(__name__)


def explain_pair(
    a: ProjectRecord,
    b: ProjectRecord,
    settings: ScannerSettings = DEFAULT_SETTINGS,
) -> tuple[SimilarityScore, Classification]:
    """Score and classify a single pair, including non-candidate verdicts."""
    normalized = (to_comparison_record(a), to_comparison_record(b))
    score = score_pair(*normalized)
    return score, evaluate_pair(a, b, score, settings, normalized)


def scan_for_duplicates(
    projects: Iterable[ProjectRecord],
    settings: ScannerSettings = DEFAULT_SETTINGS,
    reviewed_pairs: Collection[tuple[str, str]] = frozenset(),
) -> list[DuplicateGroup]:
    """Find likely duplicate pairs among active projects.

    Compares every unordered pair once (O(n²)). Each record is
    normalized a single time per scan. Pairs already present in the
    review ledger are skipped before scoring.

    Args:
        projects: Project records; soft-deleted and archived ones are ignored.
        settings: Classifier thresholds.
        reviewed_pairs: Canonical pair keys of reviewed pairs.

    Returns:
        Duplicate groups, HIGH first, then MEDIUM, then LOW. Within a
        level the input order is kept.
    """
    active = [p for p in projects if not (p.is_deleted or p.is_archived)]
    normalized = [to_comparison_record(p) for p in active]
    reviewed = set(reviewed_pairs)

    groups: list[DuplicateGroup] = []
    seen: set[tuple[str, str]] = set()
    skipped_reviewed = 0

    for i, a in enumerate(active):
        for j in range(i + 1, len(active)):
            b = active[j]
            if a.id == b.id:
                continue
            key = pair_key(a.id, b.id)
            if key in seen:
                continue
            seen.add(key)
            if key in reviewed:
                skipped_reviewed += 1
                continue

            records = (normalized[i], normalized[j])
            score = score_pair(*records)
            result = classify_pair(a, b, score, settings, records)
            if result is None:
                continue

            log.debug("Pair %s/%s classified %s", a.id, b.id, result.level)
            groups.append(DuplicateGroup(
                id=f'{key[0]}:{key[1]}',
                projects=(a, b),
                confidence_level=result.level,
                matched_criteria=result.matched_criteria,
                unmatched_criteria=result.unmatched_criteria,
                score=score,
            ))

    groups.sort(key=lambda g: LEVEL_ORDER[g.confidence_level])
    log.info(
        "Scan finished: %d active projects, %d groups, %d reviewed pairs skipped",
        len(active), len(groups), skipped_reviewed,
    )
    return groups


def scan_database(
    db_path: Path,
    settings: Optional[ScannerSettings] = None,
) -> list[DuplicateGroup]:
    """Scan the record store with stored (or given) settings and the review ledger."""
    if settings is None:
        settings = SettingsStore(db_path).load()
    with session_scope(db_path) as session:
        projects = ProjectRepository(session).list_active()
        reviewed = ReviewLedger(session).reviewed_pairs()
    return scan_for_duplicates(projects, settings, reviewed)


def cluster_groups(groups: Iterable[DuplicateGroup]) -> list[list[str]]:
    """Connected components of the pairwise match graph.

    Scan results stay pairwise; this is an optional view where X~Y and
    X~Z put X, Y and Z in one cluster even if Y and Z did not match.

    Returns:
        Sorted lists of project ids, largest clusters first.
    """
    parent: dict[str, str] = {}

    def find(x: str) -> str:
        parent.setdefault(x, x)
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    for group in groups:
        a, b = group.projects[0].id, group.projects[1].id
        root_a, root_b = find(a), find(b)
        if root_a != root_b:
            parent[max(root_a, root_b)] = min(root_a, root_b)

    clusters: dict[str, list[str]] = {}
    for node in parent:
        clusters.setdefault(find(node), []).append(node)

    return sorted(
        (sorted(members) for members in clusters.values()),
        key=lambda members: (-len(members), members),
    )


def build_duplicate_warnings(groups: Iterable[DuplicateGroup]) -> dict[str, DuplicateWarning]:
    """Map each project id to the projects it likely duplicates.

    Only HIGH and MEDIUM groups raise a warning. The reason is taken
    from the first matched criterion of the first group seen.
    """
    warnings: dict[str, DuplicateWarning] = {}
    for group in groups:
        if group.confidence_level not in (HIGH, MEDIUM):
            continue
        reason = ''
        if group.matched_criteria:
            first = group.matched_criteria[0]
            reason = f'{first.name} {first.value}' if first.value else first.name

        a, b = group.projects
        for this, other in ((a, b), (b, a)):
            warning = warnings.setdefault(this.id, DuplicateWarning(project_id=this.id))
            if other.id not in warning.duplicate_project_ids:
                warning.duplicate_project_ids.append(other.id)
            if not warning.reason:
                warning.reason = reason
    return warnings
