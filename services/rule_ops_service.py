from services.errors import RecordNotFoundError, RuleLockedError


def _rule_lock_state(connection, rule_id: str) -> bool | None:
    row = connection.execute('SELECT is_locked FROM yara_rules WHERE id = ?', (rule_id,)).fetchone()
    if row is None:
        return None
    return bool(row[0])


def update_rule_core(
    rule_id: str,
    *,
    rule_content: str | None = None,
    is_locked: bool | None = None,
    deps: dict[str, object],
) -> dict[str, object]:
    """Apply a partial edit to a stored rule.

    Fields passed as None keep their stored value; the generated_at stamp is
    always refreshed.
    """
    _connect = deps['connect']
    _utc_now_iso = deps['utc_now_iso']
    _log_event = deps['log_event']
    _emit = deps.get('emit')

    locked_value = None if is_locked is None else (1 if is_locked else 0)
    with _connect() as connection:
        if _rule_lock_state(connection, rule_id) is None:
            raise RecordNotFoundError('rule', rule_id)
        connection.execute(
            '''
            UPDATE yara_rules
            SET rule_content = COALESCE(?, rule_content),
                is_locked = COALESCE(?, is_locked),
                generated_at = ?
            WHERE id = ?
            ''',
            (rule_content, locked_value, _utc_now_iso(), rule_id),
        )
        connection.commit()
        row = connection.execute(
            '''
            SELECT id, alert_id, rule_name, rule_content, is_locked, generated_at
            FROM yara_rules
            WHERE id = ?
            ''',
            (rule_id,),
        ).fetchone()
    rule = {
        'id': str(row[0]),
        'alert_id': row[1],
        'rule_name': str(row[2]),
        'rule_content': str(row[3]),
        'is_locked': bool(row[4]),
        'generated_at': row[5],
    }
    _log_event('rule_updated', rule_id=rule_id, is_locked=rule['is_locked'], content_changed=rule_content is not None)
    if callable(_emit):
        _emit('rule.updated', rule)
    return {'success': True, 'rule': rule}


def delete_rule_core(rule_id: str, *, deps: dict[str, object]) -> dict[str, object]:
    _connect = deps['connect']
    _log_event = deps['log_event']
    _emit = deps.get('emit')

    with _connect() as connection:
        locked = _rule_lock_state(connection, rule_id)
        if locked is None:
            raise RecordNotFoundError('rule', rule_id)
        if locked:
            raise RuleLockedError(rule_id)
        connection.execute('DELETE FROM yara_rules WHERE id = ?', (rule_id,))
        connection.commit()
    _log_event('rule_deleted', rule_id=rule_id)
    if callable(_emit):
        _emit('rule.deleted', {'id': rule_id})
    return {'success': True}
