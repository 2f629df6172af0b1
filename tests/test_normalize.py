"""Tests for dupscan.normalize module."""

from dupscan import ProjectRecord
from dupscan.normalize import (
    normalize_address,
    normalize_capacity,
    normalize_text,
    to_comparison_record,
    tokenize_address,
)


class TestNormalizeText:
    """Tests for free-text normalization."""

    def test_full_width_folded_and_case_folded(self):
        assert normalize_text('  ＡＢＣ１２３  ') == 'abc123'

    def test_collapses_whitespace(self):
        assert normalize_text('安平　 一號') == '安平 一號'

    def test_none_is_empty(self):
        assert normalize_text(None) == ''

    def test_non_string_accepted(self):
        assert normalize_text(42) == '42'


class TestNormalizeAddress:
    """Tests for address normalization."""

    def test_variant_character_folded(self):
        assert normalize_address('臺南市中正路') == '台南市中正路'

    def test_full_width_digits(self):
        assert normalize_address('中正路１００號') == '中正路100號'


class TestTokenizeAddress:
    """Tests for address tokenization."""

    def test_split_after_markers(self):
        tokens = tokenize_address('台南市安平區中正路二段100號')
        assert tokens == frozenset({'台南市安平區中正路', '二段', '100號'})

    def test_space_before_marker_ignored(self):
        assert tokenize_address('中正路100 號') == tokenize_address('中正路100號')

    def test_split_at_whitespace_and_punctuation(self):
        tokens = tokenize_address('台南市 中正路,5巷')
        assert tokens == frozenset({'台南市', '中正路', '5巷'})

    def test_trailing_text_kept(self):
        assert '之1' in tokenize_address('中正路100號之1')

    def test_empty(self):
        assert tokenize_address('') == frozenset()


class TestNormalizeCapacity:
    """Tests for capacity coercion."""

    def test_numeric_string(self):
        assert normalize_capacity('12.5') == 12.5

    def test_non_positive_is_none(self):
        assert normalize_capacity(0) is None
        assert normalize_capacity(-5) is None

    def test_garbage_is_none(self):
        assert normalize_capacity('abc') is None
        assert normalize_capacity(float('nan')) is None
        assert normalize_capacity(True) is None
        assert normalize_capacity(None) is None


class TestToComparisonRecord:
    """Tests for the record conversion."""

    def test_full_record(self):
        project = ProjectRecord(
            id='p1', project_name='臺南 安平一號', address='臺南市中正路１００號',
            capacity_kwp=99.5,
        )
        record = to_comparison_record(project)
        assert record.id == 'p1'
        assert record.name == '臺南 安平一號'.casefold()
        assert record.address == '台南市中正路100號'
        assert record.address_tokens == frozenset({'台南市中正路', '100號'})
        assert record.capacity == 99.5

    def test_missing_fields_never_raise(self):
        record = to_comparison_record(ProjectRecord(id='x', project_name=None))
        assert record.name == ''
        assert record.address == ''
        assert record.address_tokens == frozenset()
        assert record.capacity is None
