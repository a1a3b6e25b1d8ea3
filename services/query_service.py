from services.db_schema_service import SEVERITIES
from services.parsing_utils_service import safe_json_payload_core, safe_json_string_list_core


def normalize_severity_filter_core(severity: str | None) -> str | None:
    """Return the severity to filter on, or None for no filter.

    Raises ValueError for anything outside the severity vocabulary.
    """
    value = str(severity or '').strip().lower()
    if not value or value == 'all':
        return None
    if value not in SEVERITIES:
        raise ValueError(f'invalid severity: {severity}')
    return value


def clamp_page_core(limit: int | None, offset: int | None, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    try:
        safe_limit = int(limit) if limit is not None else default_limit
    except (TypeError, ValueError):
        safe_limit = default_limit
    try:
        safe_offset = int(offset) if offset is not None else 0
    except (TypeError, ValueError):
        safe_offset = 0
    return max(1, min(max_limit, safe_limit)), max(0, safe_offset)


def _rows_to_dicts(cursor) -> list[dict[str, object]]:
    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _split_concat(value) -> list[str]:
    if not value:
        return []
    return [item for item in str(value).split(',') if item]


def stats_core(connection) -> dict[str, int]:
    def _count(sql: str, params: tuple = ()) -> int:
        row = connection.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    return {
        'totalAlerts': _count('SELECT COUNT(*) FROM alerts'),
        'criticalAlerts': _count('SELECT COUNT(*) FROM alerts WHERE severity = ?', ('critical',)),
        'yaraRules': _count('SELECT COUNT(*) FROM yara_rules'),
        'mitreTechniques': _count('SELECT COUNT(*) FROM mitre_attack_techniques'),
    }


def list_alerts_core(connection, *, severity: str | None, limit: int, offset: int) -> dict[str, object]:
    where_sql = ''
    params: list[object] = []
    if severity:
        where_sql = 'WHERE a.severity = ?'
        params.append(severity)
    cursor = connection.execute(
        f'''
        SELECT a.id, a.source_id, a.external_id, a.title, a.description, a.severity,
               a.published_date, a.updated_date, a.url, a.raw_data, a.is_processed,
               a.created_at, a.updated_at,
               s.name AS source_name,
               GROUP_CONCAT(DISTINCT t.technique_id) AS mitre_ids,
               GROUP_CONCAT(DISTINCT t.tactic) AS mitre_tactics
        FROM alerts a
        JOIN alert_sources s ON a.source_id = s.id
        LEFT JOIN alert_mitre_mappings amm ON a.id = amm.alert_id
        LEFT JOIN mitre_attack_techniques t ON amm.technique_id = t.id
        {where_sql}
        GROUP BY a.id
        ORDER BY a.published_date DESC
        LIMIT ? OFFSET ?
        ''',  # nosec B608
        (*params, limit, offset),
    )
    alerts = _rows_to_dicts(cursor)
    for alert in alerts:
        alert['raw_data'] = safe_json_payload_core(alert.get('raw_data'))
        alert['is_processed'] = bool(alert.get('is_processed'))
        alert['mitre_ids'] = _split_concat(alert.get('mitre_ids'))
        alert['mitre_tactics'] = _split_concat(alert.get('mitre_tactics'))
    total_row = connection.execute(
        f'SELECT COUNT(*) FROM alerts a {where_sql}',  # nosec B608
        params,
    ).fetchone()
    return {'data': alerts, 'total': int(total_row[0]) if total_row else 0}


def list_rules_core(connection, *, severity: str | None, limit: int, offset: int) -> dict[str, object]:
    where_sql = ''
    params: list[object] = []
    if severity:
        where_sql = 'WHERE a.severity = ?'
        params.append(severity)
    cursor = connection.execute(
        f'''
        SELECT r.id, r.alert_id, r.rule_name, r.rule_content, r.description, r.tags,
               r.is_locked, r.generated_at, r.created_at,
               GROUP_CONCAT(DISTINCT t.technique_id) AS mitre_ids,
               GROUP_CONCAT(DISTINCT t.tactic) AS mitre_tactics
        FROM yara_rules r
        JOIN alerts a ON r.alert_id = a.id
        LEFT JOIN alert_mitre_mappings amm ON a.id = amm.alert_id
        LEFT JOIN mitre_attack_techniques t ON amm.technique_id = t.id
        {where_sql}
        GROUP BY r.id
        ORDER BY r.generated_at DESC
        LIMIT ? OFFSET ?
        ''',  # nosec B608
        (*params, limit, offset),
    )
    rules = _rows_to_dicts(cursor)
    for rule in rules:
        rule['tags'] = safe_json_string_list_core(rule.get('tags'))
        rule['is_locked'] = bool(rule.get('is_locked'))
        rule['mitre_ids'] = _split_concat(rule.get('mitre_ids'))
        rule['mitre_tactics'] = _split_concat(rule.get('mitre_tactics'))
    total_row = connection.execute(
        f'''
        SELECT COUNT(DISTINCT r.id)
        FROM yara_rules r
        JOIN alerts a ON r.alert_id = a.id
        {where_sql}
        ''',  # nosec B608
        params,
    ).fetchone()
    return {'data': rules, 'total': int(total_row[0]) if total_row else 0}


def list_techniques_core(connection) -> list[dict[str, object]]:
    cursor = connection.execute(
        '''
        SELECT id, technique_id, technique_name, tactic, description, url, created_at
        FROM mitre_attack_techniques
        ORDER BY technique_id
        '''
    )
    return _rows_to_dicts(cursor)


def list_mappings_core(connection, *, severity: str | None) -> list[dict[str, object]]:
    where_sql = ''
    params: list[object] = []
    if severity:
        where_sql = 'WHERE a.severity = ?'
        params.append(severity)
    cursor = connection.execute(
        f'''
        SELECT m.id, m.alert_id, m.confidence_score, m.created_at,
               t.technique_id, t.technique_name, t.tactic,
               a.title AS alert_title, a.severity
        FROM alert_mitre_mappings m
        JOIN mitre_attack_techniques t ON m.technique_id = t.id
        JOIN alerts a ON m.alert_id = a.id
        {where_sql}
        ORDER BY m.created_at DESC, t.technique_id
        ''',  # nosec B608
        params,
    )
    return _rows_to_dicts(cursor)


def list_sources_core(connection) -> list[dict[str, object]]:
    cursor = connection.execute(
        '''
        SELECT id, name, url, source_type, is_active, last_checked_at, check_frequency_minutes, created_at
        FROM alert_sources
        ORDER BY created_at ASC, name ASC
        '''
    )
    sources = _rows_to_dicts(cursor)
    for source in sources:
        source['is_active'] = bool(source.get('is_active'))
    return sources


def list_processing_logs_core(connection, *, limit: int, offset: int) -> dict[str, object]:
    cursor = connection.execute(
        '''
        SELECT l.id, l.source_id, s.name AS source_name, l.status, l.alerts_found,
               l.error_message, l.processed_at
        FROM processing_logs l
        LEFT JOIN alert_sources s ON l.source_id = s.id
        ORDER BY l.processed_at DESC, l.created_at DESC
        LIMIT ? OFFSET ?
        ''',
        (limit, offset),
    )
    logs = _rows_to_dicts(cursor)
    total_row = connection.execute('SELECT COUNT(*) FROM processing_logs').fetchone()
    return {'data': logs, 'total': int(total_row[0]) if total_row else 0}
