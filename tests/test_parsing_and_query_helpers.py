import sqlite3

import pytest

from services.parsing_utils_service import (
    is_unique_conflict_core,
    parse_published_datetime_core,
    safe_json_payload_core,
    safe_json_string_list_core,
    strip_html_core,
)
from services.query_service import clamp_page_core, normalize_severity_filter_core


def test_parse_published_datetime_accepts_iso_and_rfc822():
    assert parse_published_datetime_core('2026-01-10T12:00:00.000').isoformat() == '2026-01-10T12:00:00+00:00'
    assert parse_published_datetime_core('2026-01-10T12:00:00Z').isoformat() == '2026-01-10T12:00:00+00:00'
    assert parse_published_datetime_core('Sat, 10 Jan 2026 07:00:00 -0500').isoformat() == '2026-01-10T12:00:00+00:00'
    assert parse_published_datetime_core('not a date') is None
    assert parse_published_datetime_core(None) is None


def test_strip_html_removes_markup_and_scripts():
    assert strip_html_core('<p>Patch &amp; <b>reboot</b></p><script>alert(1)</script>') == 'Patch & reboot'


def test_safe_json_helpers_tolerate_bad_input():
    assert safe_json_string_list_core('["a", 1, "b"]') == ['a', 'b']
    assert safe_json_string_list_core('{"a": 1}') == []
    assert safe_json_payload_core('{"id": "x"}') == {'id': 'x'}
    assert safe_json_payload_core('{broken') is None


def test_is_unique_conflict_only_matches_unique_violations():
    connection = sqlite3.connect(':memory:')
    connection.execute('CREATE TABLE t (k TEXT UNIQUE, v INTEGER CHECK (v > 0))')
    connection.execute("INSERT INTO t VALUES ('a', 1)")

    with pytest.raises(sqlite3.IntegrityError) as unique_exc:
        connection.execute("INSERT INTO t VALUES ('a', 2)")
    with pytest.raises(sqlite3.IntegrityError) as check_exc:
        connection.execute("INSERT INTO t VALUES ('b', 0)")

    assert is_unique_conflict_core(unique_exc.value) is True
    assert is_unique_conflict_core(check_exc.value) is False
    assert is_unique_conflict_core(ValueError('UNIQUE constraint failed')) is False


def test_normalize_severity_filter():
    assert normalize_severity_filter_core(None) is None
    assert normalize_severity_filter_core('all') is None
    assert normalize_severity_filter_core('HIGH') == 'high'
    with pytest.raises(ValueError):
        normalize_severity_filter_core('urgent')


def test_clamp_page_bounds_limit_and_offset():
    assert clamp_page_core(None, None, default_limit=50, max_limit=500) == (50, 0)
    assert clamp_page_core(0, -3, default_limit=50, max_limit=500) == (1, 0)
    assert clamp_page_core(10_000, 20, default_limit=50, max_limit=500) == (500, 20)
