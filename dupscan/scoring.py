"""Pairwise similarity metrics between normalized project records."""

from typing import Optional

from rapidfuzz.distance import Levenshtein

from dupscan import ComparisonRecord, SimilarityScore

# Guards the capacity ratio against division by zero
CAPACITY_EPSILON = 1e-9


def string_similarity(a: str, b: str) -> float:
    """Edit-distance similarity on a 0–100 scale.

    Levenshtein distance divided by the longer length, inverted. Two
    empty strings count as fully similar (100.0); callers that need a
    positive signal must check both sides are non-empty.

    Args:
        a: Normalized string.
        b: Normalized string.

    Returns:
        Similarity between 0.0 and 100.0.
    """
    a = a or ''
    b = b or ''
    longest = max(len(a), len(b), 1)
    return 100.0 * (1.0 - Levenshtein.distance(a, b) / longest)


def token_overlap(a: frozenset[str], b: frozenset[str]) -> float:
    """Jaccard overlap of two token sets on a 0–100 scale (0.0 if both empty)."""
    union = a | b
    if not union:
        return 0.0
    return 100.0 * len(a & b) / len(union)


def capacity_difference(a: Optional[float], b: Optional[float]) -> float:
    """Relative capacity gap in percent of the larger capacity.

    Missing capacities count as zero; when both are missing the gap is
    0.0 and the classifier ignores the metric.
    """
    cap_a = a or 0.0
    cap_b = b or 0.0
    if cap_a == 0.0 and cap_b == 0.0:
        return 0.0
    return 100.0 * abs(cap_a - cap_b) / max(cap_a, cap_b, CAPACITY_EPSILON)


def score_pair(a: ComparisonRecord, b: ComparisonRecord) -> SimilarityScore:
    """Compute all four metrics for a pair. Symmetric in its arguments."""
    return SimilarityScore(
        name_similarity=string_similarity(a.name, b.name),
        address_similarity=string_similarity(a.address, b.address),
        address_token_overlap=token_overlap(a.address_tokens, b.address_tokens),
        capacity_difference=capacity_difference(a.capacity, b.capacity),
    )
