import sqlite3

import pytest

from services.db_schema_service import (
    LOG_STATUSES,
    SEVERITIES,
    connect_core,
    ensure_schema,
    initialize_sqlite_core,
    seed_sources_core,
)
from services.feed_config import SEED_SOURCES, SOURCE_TYPES
from tests.store_test_helpers import count_rows, insert_alert, insert_source, open_store


def test_initialize_creates_tables_and_seeds_sources(tmp_path):
    db_path = str(tmp_path / 'fresh.db')

    resolved = initialize_sqlite_core(
        deps={'resolve_startup_db_path': lambda: db_path, 'sqlite_connect': connect_core}
    )

    assert resolved == db_path
    with sqlite3.connect(db_path) as connection:
        tables = {row[0] for row in connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert {
            'alert_sources',
            'alerts',
            'yara_rules',
            'mitre_attack_techniques',
            'alert_mitre_mappings',
            'processing_logs',
        } <= tables
        names = {row[0] for row in connection.execute('SELECT name FROM alert_sources')}
    assert names == {entry[0] for entry in SEED_SOURCES}


def test_initialize_is_idempotent_and_skips_seed_when_disabled(tmp_path):
    db_path = str(tmp_path / 'empty.db')
    deps = {'resolve_startup_db_path': lambda: db_path, 'sqlite_connect': connect_core, 'seed_sources': False}

    initialize_sqlite_core(deps=deps)
    initialize_sqlite_core(deps=deps)

    with sqlite3.connect(db_path) as connection:
        assert count_rows(connection, 'alert_sources') == 0


def test_seed_migrates_legacy_scrape_sources_to_rss(tmp_path):
    connection = open_store(tmp_path)
    insert_source(connection, name='CISA Advisories', source_type='scrape', url='https://www.cisa.gov/news')

    assert seed_sources_core(connection) == 0

    row = connection.execute("SELECT url, source_type FROM alert_sources WHERE name = 'CISA Advisories'").fetchone()
    assert row == ('https://www.cisa.gov/cybersecurity-advisories/all.xml', 'rss')
    assert count_rows(connection, 'alert_sources') == 1


def test_ensure_schema_adds_lock_column_to_older_rule_table(tmp_path):
    connection = connect_core(str(tmp_path / 'legacy.db'))
    connection.execute(
        '''
        CREATE TABLE yara_rules (
            id TEXT PRIMARY KEY,
            alert_id TEXT,
            rule_name TEXT NOT NULL UNIQUE,
            rule_content TEXT NOT NULL,
            description TEXT,
            tags TEXT,
            generated_at TEXT,
            created_at TEXT
        )
        '''
    )
    connection.commit()

    ensure_schema(connection)

    columns = {row[1] for row in connection.execute('PRAGMA table_info(yara_rules)').fetchall()}
    assert 'is_locked' in columns


def test_deleting_alert_cascades_to_rules_and_mappings(tmp_path):
    connection = open_store(tmp_path)
    source_id = insert_source(connection)
    alert_id = insert_alert(connection, source_id=source_id, external_id='ADV-1')
    connection.execute(
        "INSERT INTO yara_rules (id, alert_id, rule_name, rule_content) VALUES ('r1', ?, 'rule_one', 'rule x {}')",
        (alert_id,),
    )
    connection.execute(
        "INSERT INTO mitre_attack_techniques (id, technique_id, technique_name, tactic) VALUES ('t1', 'T1190', 'n', 'x')"
    )
    connection.execute(
        "INSERT INTO alert_mitre_mappings (id, alert_id, technique_id, confidence_score) VALUES ('m1', ?, 't1', 0.5)",
        (alert_id,),
    )
    connection.commit()

    connection.execute('DELETE FROM alerts WHERE id = ?', (alert_id,))
    connection.commit()

    assert count_rows(connection, 'yara_rules') == 0
    assert count_rows(connection, 'alert_mitre_mappings') == 0
    assert count_rows(connection, 'mitre_attack_techniques') == 1


def test_deleting_source_keeps_processing_logs_with_null_source(tmp_path):
    connection = open_store(tmp_path)
    source_id = insert_source(connection)
    connection.execute(
        "INSERT INTO processing_logs (id, source_id, status, alerts_found) VALUES ('l1', ?, 'success', 3)",
        (source_id,),
    )
    connection.commit()

    connection.execute('DELETE FROM alert_sources WHERE id = ?', (source_id,))
    connection.commit()

    row = connection.execute('SELECT source_id, alerts_found FROM processing_logs').fetchone()
    assert row == (None, 3)


def test_check_constraints_follow_vocabularies(tmp_path):
    connection = open_store(tmp_path)
    for source_type in SOURCE_TYPES:
        insert_source(connection, name=f'{source_type} feed', source_type=source_type)
    source_id = insert_source(connection)
    for index, severity in enumerate(SEVERITIES):
        insert_alert(connection, source_id=source_id, external_id=f'ADV-{index}', severity=severity)
    for index, status in enumerate(LOG_STATUSES):
        connection.execute(
            'INSERT INTO processing_logs (id, source_id, status) VALUES (?, ?, ?)',
            (f'log-{index}', source_id, status),
        )
    connection.commit()

    with pytest.raises(sqlite3.IntegrityError):
        insert_source(connection, source_type='atom')
    with pytest.raises(sqlite3.IntegrityError):
        insert_alert(connection, source_id=source_id, external_id='ADV-bad', severity='urgent')
    with pytest.raises(sqlite3.IntegrityError):
        connection.execute("INSERT INTO processing_logs (id, status) VALUES ('log-bad', 'skipped')")
