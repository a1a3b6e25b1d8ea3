import json
import logging
import uuid

from services.parsing_utils_service import is_unique_conflict_core

LOGGER = logging.getLogger(__name__)


def _alert_row_to_dict(row) -> dict[str, object]:
    return {
        'id': str(row[0]),
        'external_id': str(row[1] or ''),
        'title': str(row[2] or ''),
        'description': str(row[3] or ''),
        'severity': str(row[4] or 'info'),
        'published_date': row[5],
        'updated_date': row[6],
        'url': row[7],
    }


def _store_rule(connection, *, alert: dict[str, object], rule: dict[str, object], now_iso: str, new_id) -> str:
    try:
        connection.execute(
            '''
            INSERT INTO yara_rules (id, alert_id, rule_name, rule_content, description, tags, generated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ''',
            (
                new_id(),
                alert['id'],
                rule['name'],
                rule['content'],
                rule['description'],
                json.dumps(rule['tags']),
                now_iso,
            ),
        )
    except Exception as exc:
        if not is_unique_conflict_core(exc):
            raise
        # Another alert already owns a rule with this generated name.
        LOGGER.info('Rule name %s already taken; skipped for alert %s', rule['name'], alert['id'])
        return 'conflict'
    return 'generated'


def process_alert_core(connection, alert: dict[str, object], *, deps: dict[str, object]) -> dict[str, object]:
    _generate_rule = deps['generate_rule']
    _map_techniques = deps['map_techniques']
    _store_mappings = deps['store_mappings']
    _now_iso = deps['now_iso']
    _new_id = deps.get('new_id') or (lambda: str(uuid.uuid4()))

    alert_id = str(alert['id'])
    locked = connection.execute(
        'SELECT COUNT(*) FROM yara_rules WHERE alert_id = ? AND is_locked = 1',
        (alert_id,),
    ).fetchone()
    has_locked_rule = locked is not None and int(locked[0]) > 0

    connection.execute('DELETE FROM yara_rules WHERE alert_id = ? AND is_locked = 0', (alert_id,))
    connection.execute('DELETE FROM alert_mitre_mappings WHERE alert_id = ?', (alert_id,))

    if has_locked_rule:
        rule_status = 'locked'
    else:
        rule_status = _store_rule(
            connection,
            alert=alert,
            rule=_generate_rule(alert),
            now_iso=_now_iso(),
            new_id=_new_id,
        )

    mappings = _map_techniques(alert)
    _store_mappings(connection, alert_id=alert_id, mappings=mappings, new_id=_new_id)

    connection.execute(
        'UPDATE alerts SET is_processed = 1, updated_at = ? WHERE id = ?',
        (_now_iso(), alert_id),
    )
    return {
        'alert_id': alert_id,
        'status': 'processed',
        'rule': rule_status,
        'mappings': len(mappings),
    }


def process_alerts_core(connection, *, deps: dict[str, object]) -> list[dict[str, object]]:
    """Derive rules and technique mappings for every unprocessed alert.

    Each alert is committed on its own; a failure rolls back only that alert
    and is reported in the result list with status 'error'. Locked rules are
    neither deleted nor regenerated.
    """
    _batch_limit = int(deps.get('batch_limit', 2000))
    _log_event = deps.get('log_event')

    rows = connection.execute(
        '''
        SELECT id, external_id, title, description, severity, published_date, updated_date, url
        FROM alerts
        WHERE is_processed = 0
        ORDER BY published_date DESC
        LIMIT ?
        ''',
        (_batch_limit,),
    ).fetchall()
    connection.commit()

    results: list[dict[str, object]] = []
    for row in rows:
        alert = _alert_row_to_dict(row)
        try:
            results.append(process_alert_core(connection, alert, deps=deps))
            connection.commit()
        except Exception as exc:
            connection.rollback()
            LOGGER.exception('Error processing alert %s', alert['id'])
            if callable(_log_event):
                _log_event('alert_process_failed', alert_id=alert['id'], error=str(exc))
            results.append({'alert_id': alert['id'], 'status': 'error', 'error': str(exc)})
    return results
