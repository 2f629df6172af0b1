"""Tests for the scanner CLI."""

import csv
import sys

import pytest

import scanner
from dupscan.database import Project, session_scope
from dupscan.settings import SettingsStore


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, 'argv', ['scanner.py', *argv])
    scanner.main()


class TestScanCommand:
    """Tests for the scan subcommand."""

    def test_scan_database_writes_csv(self, seeded_db, tmp_path, monkeypatch):
        output = tmp_path / 'dupes.csv'
        _run(monkeypatch, '--db', str(seeded_db), 'scan', '--output', str(output))
        with open(output, encoding='utf-8-sig', newline='') as f:
            rows = list(csv.DictReader(f))
        assert [r['Group_ID'] for r in rows] == ['p1:p2', 'p2:p4', 'p1:p4']

    def test_scan_csv_summary(self, tmp_path, monkeypatch, capsys):
        export = tmp_path / 'projects.csv'
        export.write_text(
            'id,project_name,site_code_display,address\n'
            'a,安平一號,2024YP0001,台南市中正路100號\n'
            'b,安平一號,2024YP0001,台南市中正路100號\n',
            encoding='utf-8',
        )
        _run(monkeypatch, 'scan', '--csv', str(export), '--clusters')
        out = capsys.readouterr().out
        assert 'projects.csv' in out
        assert 'a ~ b' in out

    def test_scan_prints_warnings(self, seeded_db, monkeypatch, capsys):
        _run(monkeypatch, '--db', str(seeded_db), 'scan', '--warnings')
        lines = capsys.readouterr().out.splitlines()
        warning = next(line for line in lines if line.startswith('p1: possible duplicate of'))
        assert 'p2' in warning
        assert '案場代碼相同 2024YP0001' in warning
        assert not any(line.startswith('p3:') for line in lines)


class TestCompareCommand:
    """Tests for the compare subcommand."""

    def test_explains_pair(self, seeded_db, monkeypatch, capsys):
        _run(monkeypatch, '--db', str(seeded_db), 'compare', 'p1', 'p2')
        out = capsys.readouterr().out
        assert 'HIGH' in out
        assert '案場代碼相同' in out

    def test_unknown_project(self, seeded_db, monkeypatch):
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch, '--db', str(seeded_db), 'compare', 'p1', 'nope')
        assert exc_info.value.code == 1


class TestResolutionCommands:
    """Tests for dismiss, delete, merge and restore."""

    def test_delete_requires_admin(self, seeded_db, monkeypatch):
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch, '--db', str(seeded_db), '--role', 'editor',
                 'delete', '--keep', 'p1', '--delete', 'p2')
        assert exc_info.value.code == 1

    def test_merge_and_restore(self, seeded_db, monkeypatch, capsys):
        _run(monkeypatch, '--db', str(seeded_db), '--role', 'admin', '--actor', 'ops',
             'merge', '--keep', 'p1', '--merge', 'p2', '--documents')
        assert 'Merged p2 into p1: 2 documents, 0 status history rows' in capsys.readouterr().out

        _run(monkeypatch, '--db', str(seeded_db), '--role', 'editor', 'restore', 'p2')
        with session_scope(seeded_db) as session:
            assert not session.get(Project, 'p2').is_deleted

    def test_dismiss(self, seeded_db, tmp_path, monkeypatch):
        _run(monkeypatch, '--db', str(seeded_db), '--role', 'editor', 'dismiss', 'p1', 'p4')
        output = tmp_path / 'dupes.csv'
        _run(monkeypatch, '--db', str(seeded_db), 'scan', '--output', str(output))
        assert 'p1:p4' not in output.read_text(encoding='utf-8-sig')


class TestSettingsCommand:
    """Tests for the settings subcommand."""

    def test_set_and_reset(self, db_path, monkeypatch, capsys):
        _run(monkeypatch, '--db', str(db_path), 'settings', 'set', 'medium_name_threshold', '60')
        assert SettingsStore(db_path).load().medium_name_threshold == 60.0
        assert 'medium_name_threshold' in capsys.readouterr().out

        _run(monkeypatch, '--db', str(db_path), 'settings', 'reset')
        assert SettingsStore(db_path).load().medium_name_threshold == 75

    def test_out_of_range_clamped(self, db_path, monkeypatch, caplog):
        _run(monkeypatch, '--db', str(db_path), 'settings', 'set', 'medium_name_threshold', '120')
        assert SettingsStore(db_path).load().medium_name_threshold == 100.0
        assert 'stored as 100' in caplog.text

        _run(monkeypatch, '--db', str(db_path), 'settings', 'set', 'min_name_similarity', '-5')
        settings = SettingsStore(db_path).load()
        assert settings.min_name_similarity == 0.0
        assert settings.medium_name_threshold == 100.0
