"""Tests for dupscan.reporter module."""

import csv

import pytest

from dupscan import HIGH, LOW, MEDIUM, DuplicateGroup, MatchCriterion, ProjectRecord, SimilarityScore
from dupscan.reporter import (
    CSV_COLUMNS,
    compute_stats,
    print_summary,
    write_csv_report,
    write_html_report,
)


def _group(group_id='p1:p2', level=HIGH, a='p1', b='p2') -> DuplicateGroup:
    return DuplicateGroup(
        id=group_id,
        projects=(
            ProjectRecord(id=a, project_name='安平一號', capacity_kwp=99.5),
            ProjectRecord(id=b, project_name='安平一號'),
        ),
        confidence_level=level,
        matched_criteria=[MatchCriterion('案場代碼相同', True, '2024YP0001')],
        unmatched_criteria=[MatchCriterion('同投資方', False)],
        score=SimilarityScore(100.0, 92.5, 75.0, 0.0),
    )


@pytest.fixture
def groups() -> list[DuplicateGroup]:
    return [
        _group(),
        _group('p1:p4', MEDIUM, 'p1', 'p4'),
        _group('p5:p6', LOW, 'p5', 'p6'),
    ]


class TestComputeStats:
    """Tests for summary statistics."""

    def test_counts(self, groups):
        assert compute_stats(groups) == {
            'total': 3, 'high': 1, 'medium': 1, 'low': 1, 'projects_involved': 5,
        }

    def test_empty(self):
        assert compute_stats([])['total'] == 0


class TestCsvReport:
    """Tests for the CSV report."""

    def test_rows(self, groups, tmp_path):
        path = tmp_path / 'out' / 'report.csv'
        write_csv_report(groups, path)

        raw = path.read_bytes()
        assert raw.startswith(b'\xef\xbb\xbf')

        with open(path, encoding='utf-8-sig', newline='') as f:
            rows = list(csv.DictReader(f))
        assert list(rows[0].keys()) == CSV_COLUMNS
        assert len(rows) == 3
        assert rows[0]['Confidence'] == HIGH
        assert rows[0]['A_ID'] == 'p1'
        assert rows[0]['A_Capacity'] == '99.5'
        assert rows[0]['B_Capacity'] == ''
        assert rows[0]['Address_Similarity'] == '92.5'
        assert rows[0]['Matched'] == '案場代碼相同 (2024YP0001)'
        assert rows[0]['Unmatched'] == '同投資方'


class TestHtmlReport:
    """Tests for the HTML report."""

    def test_contains_groups(self, groups, tmp_path):
        path = tmp_path / 'report.html'
        write_html_report(groups, path, title='projects.db')
        html = path.read_text(encoding='utf-8')
        assert 'projects.db' in html
        assert 'p1:p4' in html
        assert '案場代碼相同' in html

    def test_empty_scan(self, tmp_path):
        path = tmp_path / 'report.html'
        write_html_report([], path)
        assert '未發現重複案場' in path.read_text(encoding='utf-8')


class TestPrintSummary:
    """Tests for the stdout summary."""

    def test_output(self, groups, capsys):
        print_summary(groups, 'projects.db')
        out = capsys.readouterr().out
        assert 'projects.db' in out
        assert 'High confidence:' in out
        assert out.count('\n') > 5
