"""Normalization of project records into comparison-ready form."""

import math
import re
import unicodedata
from typing import Any, Optional

from dupscan import ComparisonRecord, ProjectRecord

# Matches any sequence of whitespace (including Unicode whitespace like U+3000)
_WHITESPACE_RE = re.compile(r'\s+')

# Address component markers: road/street, section, lane, alley, number
ADDRESS_MARKERS = '路街段巷弄號'
_MARKER_RE = re.compile(f'([{ADDRESS_MARKERS}])')
_SPACE_BEFORE_MARKER_RE = re.compile(rf'\s+(?=[{ADDRESS_MARKERS}])')
_SEPARATOR_RE = re.compile(r'[\s,;、。()]+')

# Common variant characters in Taiwanese addresses
_VARIANTS = str.maketrans({'臺': '台'})


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    if not isinstance(value, str):
        value = str(value)
    return value


def normalize_text(value: Any) -> str:
    """Normalize a free-text field for comparison.

    Applies NFKC (folds full-width digits, letters and punctuation to
    their half-width forms), case-folds, and collapses whitespace.

    Args:
        value: Raw field value; None and non-strings are accepted.

    Returns:
        Normalized string, empty for missing values.
    """
    text = unicodedata.normalize('NFKC', _as_text(value))
    return _WHITESPACE_RE.sub(' ', text).strip().casefold()


def normalize_address(value: Any) -> str:
    """Normalize an address string (text rules plus variant folding)."""
    return normalize_text(value).translate(_VARIANTS)


def tokenize_address(address: str) -> frozenset[str]:
    """Split a normalized address into component tokens.

    A token ends after each address marker (路, 街, 段, 巷, 弄, 號) and at
    whitespace or punctuation. Whitespace directly before a marker is
    dropped so that "100 號" and "100號" yield the same token.

    Args:
        address: Output of normalize_address().

    Returns:
        Set of non-empty tokens.
    """
    compact = _SPACE_BEFORE_MARKER_RE.sub('', address)
    split = _MARKER_RE.sub(r'\1 ', compact)
    return frozenset(t for t in _SEPARATOR_RE.split(split) if t)


def normalize_capacity(value: Any) -> Optional[float]:
    """Coerce a capacity (kWp) to a positive float, or None when absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        capacity = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(capacity) or math.isinf(capacity) or capacity <= 0:
        return None
    return capacity


def to_comparison_record(project: ProjectRecord) -> ComparisonRecord:
    """Convert a ProjectRecord into its ComparisonRecord. Never raises."""
    address = normalize_address(getattr(project, 'address', None))
    return ComparisonRecord(
        id=_as_text(getattr(project, 'id', None)),
        name=normalize_text(getattr(project, 'project_name', None)),
        address=address,
        address_tokens=tokenize_address(address),
        capacity=normalize_capacity(getattr(project, 'capacity_kwp', None)),
        city=normalize_text(getattr(project, 'city', None)),
        district=normalize_text(getattr(project, 'district', None)),
    )
