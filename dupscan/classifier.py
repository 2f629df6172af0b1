"""Confidence classification of scored project pairs."""

from typing import Optional

from dupscan import (
    EXCLUDED,
    HIGH,
    LOW,
    MEDIUM,
    NONE,
    Classification,
    ComparisonRecord,
    MatchCriterion,
    ProjectRecord,
    SimilarityScore,
)
from dupscan.normalize import to_comparison_record
from dupscan.settings import DEFAULT_SETTINGS, ScannerSettings

# Criterion names shown to operators
SITE_CODE = '案場代碼相同'
INVESTOR_YEAR_SEQ = '投資代碼+年份+序號相同'
SIMILARITY_FLOOR = '地址或名稱相似度達下限'
CAPACITY_LIMIT = '容量差距'
TOKEN_OVERLAP = '地址片段重疊'
ADDRESS_SIMILARITY = '地址相似度'
NAME_SIMILARITY = '名稱相似度'
SAME_INVESTOR = '同投資方'
SAME_AREA = '同鄉鎮市區'
CAPACITY_CLOSE = '容量接近'


def _pct(value: float) -> str:
    return f'{value:.0f}%'


def _site_code_criterion(a: ProjectRecord, b: ProjectRecord) -> MatchCriterion:
    code_a = (a.site_code_display or '').strip()
    code_b = (b.site_code_display or '').strip()
    if code_a and code_b:
        if code_a == code_b:
            return MatchCriterion(SITE_CODE, True, code_a)
        return MatchCriterion(SITE_CODE, False, '值不相同')
    return MatchCriterion(SITE_CODE, False, '案場代碼有空值')


def _investor_year_seq_criterion(a: ProjectRecord, b: ProjectRecord) -> MatchCriterion:
    """All three fields must be present on both records and equal."""
    blockers: list[str] = []
    if not (a.investor_code and b.investor_code):
        blockers.append('投資代碼為空')
    if a.year is None or b.year is None:
        blockers.append('年份為空')
    if a.seq is None or b.seq is None:
        blockers.append('序號為空')
    if blockers:
        return MatchCriterion(INVESTOR_YEAR_SEQ, False, '、'.join(blockers))

    key_a = (a.investor_code, a.year, a.seq)
    key_b = (b.investor_code, b.year, b.seq)
    if key_a == key_b:
        return MatchCriterion(INVESTOR_YEAR_SEQ, True, f'{a.investor_code}-{a.year}-{a.seq}')
    return MatchCriterion(INVESTOR_YEAR_SEQ, False, '值不相同')


def _effective_similarities(
    a: ComparisonRecord,
    b: ComparisonRecord,
    score: SimilarityScore,
) -> tuple[float, float]:
    """Address and name similarity, zeroed when either side is empty.

    Two empty strings score 100 in the scorer; that must never count as
    a positive signal.
    """
    has_address = bool(a.address and b.address)
    has_name = bool(a.name and b.name)
    return (
        score.address_similarity if has_address else 0.0,
        score.name_similarity if has_name else 0.0,
    )


def _exclusion_criteria(
    a: ComparisonRecord,
    b: ComparisonRecord,
    score: SimilarityScore,
    similarities: tuple[float, float],
    settings: ScannerSettings,
) -> tuple[bool, list[MatchCriterion]]:
    """Evaluate the hard-exclusion floors.

    Returns:
        (excluded, criteria) where each criterion is matched when the
        pair passes that floor.
    """
    address_sim, name_sim = similarities
    criteria: list[MatchCriterion] = []

    too_dissimilar = (
        address_sim < settings.min_address_similarity
        and name_sim < settings.min_name_similarity
    )
    criteria.append(MatchCriterion(
        SIMILARITY_FLOOR, not too_dissimilar,
        f'地址 {_pct(address_sim)} / 名稱 {_pct(name_sim)}',
    ))

    capacity_gap = False
    if a.capacity is not None and b.capacity is not None:
        capacity_gap = score.capacity_difference > settings.max_capacity_difference
        criteria.append(MatchCriterion(
            CAPACITY_LIMIT, not capacity_gap, f'差距 {score.capacity_difference:.1f}%',
        ))

    few_tokens = score.address_token_overlap < settings.min_address_token_overlap
    criteria.append(MatchCriterion(
        TOKEN_OVERLAP, not few_tokens, _pct(score.address_token_overlap),
    ))

    return too_dissimilar or capacity_gap or few_tokens, criteria


def _similarity_criteria(
    similarities: tuple[float, float],
    settings: ScannerSettings,
) -> list[MatchCriterion]:
    """Medium-tier checks: address OR name similarity at the thresholds."""
    address_sim, name_sim = similarities
    address_hit = address_sim >= settings.medium_address_threshold
    name_hit = name_sim >= settings.medium_name_threshold
    return [
        MatchCriterion(
            ADDRESS_SIMILARITY, address_hit,
            _pct(address_sim) if address_hit
            else f'{_pct(address_sim)} (需≥{_pct(settings.medium_address_threshold)})',
        ),
        MatchCriterion(
            NAME_SIMILARITY, name_hit,
            _pct(name_sim) if name_hit
            else f'{_pct(name_sim)} (需≥{_pct(settings.medium_name_threshold)})',
        ),
    ]


def _context_criteria(
    a: ProjectRecord,
    b: ProjectRecord,
    na: ComparisonRecord,
    nb: ComparisonRecord,
    score: SimilarityScore,
    settings: ScannerSettings,
) -> list[MatchCriterion]:
    """Low-tier checks: same investor, same city and district, close capacity."""
    criteria: list[MatchCriterion] = []

    if a.investor_id and b.investor_id and a.investor_id == b.investor_id:
        label = a.investor_name or a.investor_code or a.investor_id
        criteria.append(MatchCriterion(SAME_INVESTOR, True, label))
    else:
        criteria.append(MatchCriterion(SAME_INVESTOR, False))

    if na.city and na.district and na.city == nb.city and na.district == nb.district:
        criteria.append(MatchCriterion(SAME_AREA, True, f'{a.city}{a.district}'))
    else:
        criteria.append(MatchCriterion(SAME_AREA, False))

    both_absent = na.capacity is None and nb.capacity is None
    close = score.capacity_difference <= settings.max_capacity_difference
    value = '無容量資料' if both_absent else f'差距 {score.capacity_difference:.1f}%'
    criteria.append(MatchCriterion(CAPACITY_CLOSE, close, value))

    return criteria


def _split(level: str, criteria: list[MatchCriterion]) -> Classification:
    return Classification(
        level=level,
        matched_criteria=[c for c in criteria if c.matched],
        unmatched_criteria=[c for c in criteria if not c.matched],
    )


def evaluate_pair(
    a: ProjectRecord,
    b: ProjectRecord,
    score: SimilarityScore,
    settings: ScannerSettings = DEFAULT_SETTINGS,
    normalized: Optional[tuple[ComparisonRecord, ComparisonRecord]] = None,
) -> Classification:
    """Classify a pair and report every criterion that was evaluated.

    Rules, first applicable wins:
    1. Same site code, or same investor code + year + sequence → HIGH
    2. Any hard-exclusion floor failed → EXCLUDED
    3. Address or name similarity at the medium thresholds → MEDIUM
    4. Same investor, same city and district, capacity close → LOW
    5. Otherwise → NONE

    Args:
        a: First project.
        b: Second project.
        score: Similarity metrics for the pair.
        settings: Thresholds to apply.
        normalized: ComparisonRecords of a and b, when the caller
            already holds them.

    Returns:
        Classification whose level is HIGH, MEDIUM, LOW, EXCLUDED or NONE.
    """
    if normalized is None:
        normalized = (to_comparison_record(a), to_comparison_record(b))
    na, nb = normalized
    similarities = _effective_similarities(na, nb, score)

    criteria = [_site_code_criterion(a, b), _investor_year_seq_criterion(a, b)]
    if any(c.matched for c in criteria):
        criteria += _similarity_criteria(similarities, settings)
        return _split(HIGH, criteria)

    excluded, exclusion = _exclusion_criteria(na, nb, score, similarities, settings)
    criteria += exclusion
    if excluded:
        return _split(EXCLUDED, criteria)

    similarity = _similarity_criteria(similarities, settings)
    context = _context_criteria(a, b, na, nb, score, settings)
    criteria += similarity + context
    if any(c.matched for c in similarity):
        return _split(MEDIUM, criteria)

    if all(c.matched for c in context):
        return _split(LOW, criteria)

    return _split(NONE, criteria)


def classify_pair(
    a: ProjectRecord,
    b: ProjectRecord,
    score: SimilarityScore,
    settings: ScannerSettings = DEFAULT_SETTINGS,
    normalized: Optional[tuple[ComparisonRecord, ComparisonRecord]] = None,
) -> Optional[Classification]:
    """Like evaluate_pair(), but None when the pair is not a candidate."""
    result = evaluate_pair(a, b, score, settings, normalized)
    return result if result.is_candidate else None
