"""Tests for dupscan.reader module."""

from datetime import datetime

import pytest

from dupscan.reader import detect_encoding, normalize_whitespace, read_projects

HEADER = 'id,project_name,site_code_display,address,capacity_kwp,intake_year,seq,created_at,is_deleted'


def _write_csv(path, *rows, encoding='utf-8'):
    path.write_text('\n'.join((HEADER,) + rows) + '\n', encoding=encoding)
    return path


class TestDetectEncoding:
    """Tests for encoding detection."""

    def test_utf16le_bom(self, tmp_path):
        f = tmp_path / 'projects.csv'
        f.write_bytes(b'\xff\xfe' + 'id'.encode('utf-16-le'))
        assert detect_encoding(f) == 'utf-16-le'

    def test_utf8_fallback(self, tmp_path):
        f = tmp_path / 'test.csv'
        f.write_text('hello', encoding='utf-8')
        assert detect_encoding(f) == 'utf-8-sig'


class TestNormalizeWhitespace:
    """Tests for whitespace normalization."""

    def test_strips_and_collapses(self):
        assert normalize_whitespace('  安平  一號 ') == '安平 一號'

    def test_unicode_whitespace(self):
        # U+3000 = ideographic space
        assert normalize_whitespace('安平　一號') == '安平 一號'


class TestReadProjects:
    """Tests for reading project exports."""

    def test_reads_typed_fields(self, tmp_path):
        f = _write_csv(
            tmp_path / 'projects.csv',
            'p1,安平一號,2024YP0001,台南市中正路100號,"1,250.5",2024,7,2024-03-01T08:00:00,',
        )
        [project] = read_projects(f)
        assert project.id == 'p1'
        assert project.project_name == '安平一號'
        assert project.site_code_display == '2024YP0001'
        assert project.capacity_kwp == 1250.5
        assert project.intake_year == 2024
        assert project.seq == 7
        assert project.created_at == datetime(2024, 3, 1, 8, 0)
        assert not project.is_deleted

    def test_blank_optionals_become_none(self, tmp_path):
        f = _write_csv(tmp_path / 'projects.csv', 'p1,安平一號,,,,,,,')
        [project] = read_projects(f)
        assert project.site_code_display is None
        assert project.address is None
        assert project.capacity_kwp is None
        assert project.project_code == ''

    def test_deleted_flag(self, tmp_path):
        f = _write_csv(tmp_path / 'projects.csv', 'p1,安平一號,,,,,,,true')
        assert read_projects(f)[0].is_deleted

    def test_archived_flag(self, tmp_path):
        f = tmp_path / 'projects.csv'
        f.write_text('id,project_name,is_archived\np1,安平一號,Y\np2,安平二號,0\n', encoding='utf-8')
        first, second = read_projects(f)
        assert first.is_archived
        assert not second.is_archived
        assert not first.is_deleted

    def test_utf16_file(self, tmp_path):
        f = _write_csv(tmp_path / 'projects.csv', 'p1,安平一號,,,,,,,', encoding='utf-16')
        assert read_projects(f)[0].project_name == '安平一號'

    def test_bad_rows_skipped(self, tmp_path):
        f = _write_csv(
            tmp_path / 'projects.csv',
            ',無編號,,,,,,,',
            'p2,容量錯誤,,,abc,,,,',
            'p3,正常,,,10,,,,',
        )
        assert [p.id for p in read_projects(f)] == ['p3']

    def test_missing_columns(self, tmp_path):
        f = tmp_path / 'projects.csv'
        f.write_text('id,address\np1,台南市\n', encoding='utf-8')
        with pytest.raises(ValueError, match='Missing columns'):
            read_projects(f)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_projects(tmp_path / 'nope.csv')
