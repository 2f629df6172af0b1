"""Core module for the duplicate project scanner."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Confidence levels, strongest first
HIGH = 'HIGH'
MEDIUM = 'MEDIUM'
LOW = 'LOW'
# Verdicts that never produce a DuplicateGroup
EXCLUDED = 'EXCLUDED'
NONE = 'NONE'

LEVEL_ORDER: dict[str, int] = {HIGH: 0, MEDIUM: 1, LOW: 2}


@dataclass
class ProjectRecord:
    """Represents a solar project row as read from the record store."""

    id: str
    project_name: str = ''
    project_code: str = ''
    site_code_display: Optional[str] = None
    investor_id: Optional[str] = None
    investor_code: Optional[str] = None
    investor_name: Optional[str] = None
    intake_year: Optional[int] = None
    fiscal_year: Optional[int] = None
    seq: Optional[int] = None
    address: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    capacity_kwp: Optional[float] = None
    created_at: Optional[datetime] = None
    status: str = ''
    document_count: int = 0
    status_history_count: int = 0
    is_deleted: bool = False
    is_archived: bool = False

    @property
    def year(self) -> Optional[int]:
        """Intake year, falling back to the fiscal year."""
        return self.intake_year if self.intake_year is not None else self.fiscal_year


@dataclass(frozen=True)
class ComparisonRecord:
    """Comparison-ready view of a ProjectRecord. Never persisted."""

    id: str
    name: str
    address: str
    address_tokens: frozenset[str]
    capacity: Optional[float]
    city: str = ''
    district: str = ''


@dataclass(frozen=True)
class SimilarityScore:
    """Pairwise metrics, each on a 0–100 scale."""

    name_similarity: float
    address_similarity: float
    address_token_overlap: float
    capacity_difference: float


@dataclass
class MatchCriterion:
    """A named check and, when computed, the value it produced."""

    name: str
    matched: bool
    value: Optional[str] = None


@dataclass
class Classification:
    """Verdict of the classifier for one pair."""

    level: str            # HIGH, MEDIUM, LOW, EXCLUDED, NONE
    matched_criteria: list[MatchCriterion] = field(default_factory=list)
    unmatched_criteria: list[MatchCriterion] = field(default_factory=list)

    @property
    def is_candidate(self) -> bool:
        return self.level in LEVEL_ORDER


@dataclass
class DuplicateGroup:
    """A pair of projects flagged as likely duplicates by one scan."""

    id: str
    projects: tuple[ProjectRecord, ProjectRecord]
    confidence_level: str  # HIGH, MEDIUM, LOW
    matched_criteria: list[MatchCriterion] = field(default_factory=list)
    unmatched_criteria: list[MatchCriterion] = field(default_factory=list)
    score: Optional[SimilarityScore] = None

    @property
    def pair_key(self) -> tuple[str, str]:
        return pair_key(self.projects[0].id, self.projects[1].id)


@dataclass
class DuplicateWarning:
    """Per-project badge data derived from High/Medium groups."""

    project_id: str
    duplicate_project_ids: list[str] = field(default_factory=list)
    reason: str = ''

    @property
    def has_potential_duplicates(self) -> bool:
        return bool(self.duplicate_project_ids)


def pair_key(id_a: str, id_b: str) -> tuple[str, str]:
    """Canonical unordered key for a pair of project ids."""
    return (id_a, id_b) if id_a <= id_b else (id_b, id_a)
