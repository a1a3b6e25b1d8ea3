import sqlite3
import uuid

from services.feed_config import LEGACY_SCRAPE_TO_RSS, SEED_SOURCES

SCHEMA_VERSION = '2026-10-16.1'
SEVERITIES: tuple[str, ...] = ('critical', 'high', 'medium', 'low', 'info')
LOG_STATUSES: tuple[str, ...] = ('success', 'error', 'warning')


def connect_core(db_path: str) -> sqlite3.Connection:
    connection = sqlite3.connect(db_path)
    # Cascades from alerts to rules and mappings depend on this pragma.
    connection.execute('PRAGMA foreign_keys = ON')
    return connection


def ensure_schema(connection) -> None:
    connection.execute(
        '''
        CREATE TABLE IF NOT EXISTS schema_meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        '''
    )
    connection.execute(
        '''
        INSERT INTO schema_meta (key, value, updated_at)
        VALUES ('schema_version', ?, datetime('now'))
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
        ''',
        (SCHEMA_VERSION,),
    )
    connection.execute(
        '''
        CREATE TABLE IF NOT EXISTS alert_sources (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            url TEXT NOT NULL,
            source_type TEXT NOT NULL CHECK (source_type IN ('api', 'rss', 'scrape')),
            is_active INTEGER DEFAULT 1,
            last_checked_at TEXT,
            check_frequency_minutes INTEGER DEFAULT 60,
            created_at TEXT DEFAULT (datetime('now'))
        )
        '''
    )
    connection.execute(
        '''
        CREATE TABLE IF NOT EXISTS alerts (
            id TEXT PRIMARY KEY,
            source_id TEXT,
            external_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            severity TEXT CHECK (severity IN ('critical', 'high', 'medium', 'low', 'info')),
            published_date TEXT,
            updated_date TEXT,
            url TEXT,
            raw_data TEXT,
            is_processed INTEGER DEFAULT 0,
            created_at TEXT DEFAULT (datetime('now')),
            updated_at TEXT DEFAULT (datetime('now')),
            FOREIGN KEY (source_id) REFERENCES alert_sources(id) ON DELETE CASCADE,
            UNIQUE(source_id, external_id)
        )
        '''
    )
    connection.execute(
        '''
        CREATE TABLE IF NOT EXISTS yara_rules (
            id TEXT PRIMARY KEY,
            alert_id TEXT,
            rule_name TEXT NOT NULL UNIQUE,
            rule_content TEXT NOT NULL,
            description TEXT,
            tags TEXT,
            is_locked INTEGER NOT NULL DEFAULT 0,
            generated_at TEXT DEFAULT (datetime('now')),
            created_at TEXT DEFAULT (datetime('now')),
            FOREIGN KEY (alert_id) REFERENCES alerts(id) ON DELETE CASCADE
        )
        '''
    )
    rule_cols = connection.execute('PRAGMA table_info(yara_rules)').fetchall()
    if not any(col[1] == 'is_locked' for col in rule_cols):
        connection.execute(
            "ALTER TABLE yara_rules ADD COLUMN is_locked INTEGER NOT NULL DEFAULT 0"
        )
    connection.execute(
        '''
        CREATE TABLE IF NOT EXISTS mitre_attack_techniques (
            id TEXT PRIMARY KEY,
            technique_id TEXT NOT NULL UNIQUE,
            technique_name TEXT NOT NULL,
            tactic TEXT NOT NULL,
            description TEXT,
            url TEXT,
            created_at TEXT DEFAULT (datetime('now'))
        )
        '''
    )
    connection.execute(
        '''
        CREATE TABLE IF NOT EXISTS alert_mitre_mappings (
            id TEXT PRIMARY KEY,
            alert_id TEXT,
            technique_id TEXT,
            confidence_score REAL CHECK (confidence_score >= 0 AND confidence_score <= 1),
            created_at TEXT DEFAULT (datetime('now')),
            FOREIGN KEY (alert_id) REFERENCES alerts(id) ON DELETE CASCADE,
            FOREIGN KEY (technique_id) REFERENCES mitre_attack_techniques(id) ON DELETE CASCADE,
            UNIQUE(alert_id, technique_id)
        )
        '''
    )
    connection.execute(
        '''
        CREATE TABLE IF NOT EXISTS processing_logs (
            id TEXT PRIMARY KEY,
            source_id TEXT,
            status TEXT NOT NULL CHECK (status IN ('success', 'error', 'warning')),
            alerts_found INTEGER DEFAULT 0,
            error_message TEXT,
            processed_at TEXT DEFAULT (datetime('now')),
            created_at TEXT DEFAULT (datetime('now')),
            FOREIGN KEY (source_id) REFERENCES alert_sources(id) ON DELETE SET NULL
        )
        '''
    )
    for index_name, table, column in (
        ('idx_alerts_source_id', 'alerts', 'source_id'),
        ('idx_alerts_published_date', 'alerts', 'published_date DESC'),
        ('idx_alerts_severity', 'alerts', 'severity'),
        ('idx_alerts_is_processed', 'alerts', 'is_processed'),
        ('idx_yara_rules_alert_id', 'yara_rules', 'alert_id'),
        ('idx_alert_mitre_mappings_alert_id', 'alert_mitre_mappings', 'alert_id'),
        ('idx_alert_mitre_mappings_technique_id', 'alert_mitre_mappings', 'technique_id'),
        ('idx_processing_logs_source_id', 'processing_logs', 'source_id'),
        ('idx_processing_logs_processed_at', 'processing_logs', 'processed_at DESC'),
    ):
        # Names come from the literal tuple above, never from input.
        connection.execute(f'CREATE INDEX IF NOT EXISTS {index_name} ON {table}({column})')  # nosec B608
    connection.commit()


def seed_sources_core(connection, *, new_id=None) -> int:
    _new_id = new_id or (lambda: str(uuid.uuid4()))
    existing = connection.execute('SELECT COUNT(*) FROM alert_sources').fetchone()
    if existing is not None and int(existing[0]) > 0:
        for name, rss_url in LEGACY_SCRAPE_TO_RSS.items():
            connection.execute(
                '''
                UPDATE alert_sources
                SET url = ?, source_type = 'rss'
                WHERE name = ? AND source_type = 'scrape'
                ''',
                (rss_url, name),
            )
        connection.commit()
        return 0
    for name, url, source_type, frequency in SEED_SOURCES:
        connection.execute(
            '''
            INSERT INTO alert_sources (id, name, url, source_type, check_frequency_minutes)
            VALUES (?, ?, ?, ?, ?)
            ''',
            (_new_id(), name, url, source_type, frequency),
        )
    connection.commit()
    return len(SEED_SOURCES)


def initialize_sqlite_core(*, deps: dict[str, object]) -> str:
    _resolve_startup_db_path = deps['resolve_startup_db_path']
    _sqlite_connect = deps['sqlite_connect']
    _seed_sources = bool(deps.get('seed_sources', True))

    db_path = _resolve_startup_db_path()
    connection = _sqlite_connect(db_path)
    try:
        connection.execute('PRAGMA journal_mode = WAL')
        ensure_schema(connection)
        if _seed_sources:
            seed_sources_core(connection)
    finally:
        connection.close()
    return db_path
