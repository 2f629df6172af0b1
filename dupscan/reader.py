"""CSV reader for project exports with automatic encoding detection."""

import csv
import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from dupscan import ProjectRecord

log = logging.getLogger(__name__)

# Matches any sequence of whitespace (including Unicode whitespace like U+3000)
_WHITESPACE_RE = re.compile(r'\s+')

REQUIRED_COLUMNS = {'id', 'project_name'}
INT_COLUMNS = ('intake_year', 'fiscal_year', 'seq', 'document_count', 'status_history_count')
TEXT_COLUMNS = (
    'project_code', 'site_code_display', 'investor_id', 'investor_code',
    'investor_name', 'address', 'city', 'district',
)
TRUE_VALUES = {'1', 'true', 't', 'yes', 'y'}


def detect_encoding(path: Path) -> str:
    """Detect file encoding by checking for BOM bytes.

    Args:
        path: Path to the CSV file.

    Returns:
        Encoding string suitable for open().
    """
    with open(path, 'rb') as f:
        bom = f.read(2)
    if bom == b'\xff\xfe':
        return 'utf-16-le'
    return 'utf-8-sig'


def normalize_whitespace(value: str) -> str:
    """Collapse any whitespace run into one space and strip the ends."""
    return _WHITESPACE_RE.sub(' ', value).strip()


def _optional_int(value: str) -> Optional[int]:
    return int(float(value)) if value else None


def _optional_float(value: str) -> Optional[float]:
    return float(value.replace(',', '')) if value else None


def _optional_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value.replace('Z', '+00:00')) if value else None


def read_projects(path: str | Path) -> list[ProjectRecord]:
    """Read project records from a CSV export.

    Handles UTF-16LE (with BOM) and UTF-8 (with or without BOM).
    Fields are trimmed and whitespace-normalized; blank optional values
    become None.

    Args:
        path: Path to the CSV file.

    Returns:
        List of ProjectRecord objects.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If required columns are missing.
    """
    path = Path(path)
    encoding = detect_encoding(path)

    with open(path, 'r', encoding=encoding, newline='') as f:
        content = f.read()

    # Strip BOM if present
    content = content.lstrip('\ufeff')

    reader = csv.DictReader(io.StringIO(content))

    if reader.fieldnames is None:
        raise ValueError(f"File {path} is empty or has no header row.")
    actual_cols = {normalize_whitespace(c) for c in reader.fieldnames}
    missing = REQUIRED_COLUMNS - actual_cols
    if missing:
        raise ValueError(
            f"Missing columns in {path}: {', '.join(sorted(missing))}"
        )

    projects: list[ProjectRecord] = []
    for row_num, row in enumerate(reader, start=2):
        cleaned = {normalize_whitespace(k): normalize_whitespace(v or '')
                   for k, v in row.items() if k is not None}
        if not cleaned.get('id'):
            log.warning("Row %d in %s skipped: empty id", row_num, path)
            continue
        try:
            project = ProjectRecord(
                id=cleaned['id'],
                project_name=cleaned.get('project_name', ''),
                status=cleaned.get('status', ''),
                capacity_kwp=_optional_float(cleaned.get('capacity_kwp', '')),
                created_at=_optional_datetime(cleaned.get('created_at', '')),
                is_deleted=cleaned.get('is_deleted', '').lower() in TRUE_VALUES,
                is_archived=cleaned.get('is_archived', '').lower() in TRUE_VALUES,
                **{c: cleaned.get(c) or None for c in TEXT_COLUMNS},
                **{c: _optional_int(cleaned.get(c, '')) for c in INT_COLUMNS},
            )
            project.project_code = project.project_code or ''
            project.document_count = project.document_count or 0
            project.status_history_count = project.status_history_count or 0
            projects.append(project)
        except (ValueError, KeyError) as exc:
            log.warning("Row %d in %s skipped: %s", row_num, path, exc)

    log.info("%d projects read from %s", len(projects), path)
    return projects
