"""Report generation for scan results (CSV, HTML, summary)."""

import csv
import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from dupscan import HIGH, LOW, MEDIUM, DuplicateGroup, MatchCriterion, ProjectRecord

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'

PROJECT_FIELDS = [
    ('ID', 'id'),
    ('Code', 'project_code'),
    ('Name', 'project_name'),
    ('SiteCode', 'site_code_display'),
    ('Investor', 'investor_code'),
    ('Address', 'address'),
    ('Capacity', 'capacity_kwp'),
    ('Documents', 'document_count'),
    ('StatusHistory', 'status_history_count'),
]

CSV_COLUMNS = (
    ['Group_ID', 'Confidence']
    + [f'A_{label}' for label, _ in PROJECT_FIELDS]
    + [f'B_{label}' for label, _ in PROJECT_FIELDS]
    + [
        'Address_Similarity',
        'Name_Similarity',
        'Token_Overlap',
        'Capacity_Difference',
        'Matched',
        'Unmatched',
    ]
)


def _format_criteria(criteria: list[MatchCriterion]) -> str:
    return ', '.join(f'{c.name} ({c.value})' if c.value else c.name for c in criteria)


def _project_cells(prefix: str, project: ProjectRecord) -> dict:
    cells = {}
    for label, attr in PROJECT_FIELDS:
        value = getattr(project, attr)
        cells[f'{prefix}_{label}'] = '' if value is None else str(value)
    return cells


def _group_to_row(group: DuplicateGroup) -> dict:
    """Convert a DuplicateGroup to a flat dict for CSV/HTML output."""
    a, b = group.projects
    score = group.score
    row = {'Group_ID': group.id, 'Confidence': group.confidence_level}
    row.update(_project_cells('A', a))
    row.update(_project_cells('B', b))
    row.update({
        'Address_Similarity': f'{score.address_similarity:.1f}' if score else '',
        'Name_Similarity': f'{score.name_similarity:.1f}' if score else '',
        'Token_Overlap': f'{score.address_token_overlap:.1f}' if score else '',
        'Capacity_Difference': f'{score.capacity_difference:.1f}' if score else '',
        'Matched': _format_criteria(group.matched_criteria),
        'Unmatched': _format_criteria(group.unmatched_criteria),
    })
    return row


def write_csv_report(groups: list[DuplicateGroup], output_path: Path) -> None:
    """Write scan results as a CSV report.

    Uses UTF-8 with BOM (utf-8-sig) so that Excel shows Chinese text
    correctly.

    Args:
        groups: Duplicate groups from a scan.
        output_path: Path for the output CSV file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8-sig') as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS, extrasaction='ignore')
        writer.writeheader()
        for group in groups:
            writer.writerow(_group_to_row(group))

    log.info("CSV report written: %s (%d rows)", output_path, len(groups))


def write_html_report(
    groups: list[DuplicateGroup],
    output_path: Path,
    title: str = '',
) -> None:
    """Write scan results as an HTML report using Jinja2.

    Args:
        groups: Duplicate groups from a scan.
        output_path: Path for the output HTML file.
        title: Report title (e.g. the data source).
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
    )
    template = env.get_template('report.html')

    html = template.render(
        title=title,
        groups=groups,
        stats=compute_stats(groups),
        project_fields=PROJECT_FIELDS,
    )

    output_path.write_text(html, encoding='utf-8')
    log.info("HTML report written: %s", output_path)


def compute_stats(groups: list[DuplicateGroup]) -> dict:
    """Compute summary statistics from scan results."""
    projects = {p.id for g in groups for p in g.projects}
    return {
        'total': len(groups),
        'high': sum(1 for g in groups if g.confidence_level == HIGH),
        'medium': sum(1 for g in groups if g.confidence_level == MEDIUM),
        'low': sum(1 for g in groups if g.confidence_level == LOW),
        'projects_involved': len(projects),
    }


def print_summary(groups: list[DuplicateGroup], title: str = '') -> None:
    """Print a summary of scan results to stdout."""
    stats = compute_stats(groups)

    print(f"\n=== Duplicate scan: {title} ===")
    print(f"Duplicate groups:          {stats['total']:>5}")
    print(f"  - High confidence:       {stats['high']:>5}")
    print(f"  - Medium confidence:     {stats['medium']:>5}")
    print(f"  - Low confidence:        {stats['low']:>5}")
    print(f"Projects involved:         {stats['projects_involved']:>5}")
    print()
