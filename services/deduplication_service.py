import logging

LOGGER = logging.getLogger(__name__)


def find_duplicate_alert_ids_core(connection) -> list[str]:
    duplicate_groups = connection.execute(
        '''
        SELECT external_id, COUNT(*) AS entry_count
        FROM alerts
        GROUP BY external_id
        HAVING entry_count > 1
        '''
    ).fetchall()
    ids_to_delete: list[str] = []
    for group in duplicate_groups:
        entries = connection.execute(
            '''
            SELECT id, title, published_date
            FROM alerts
            WHERE external_id = ?
            ORDER BY published_date DESC, id DESC
            ''',
            (group[0],),
        ).fetchall()
        if not entries:
            continue
        kept = entries[0]
        LOGGER.info(
            'Duplicate set %s (%d entries); keeping %s published %s',
            group[0],
            len(entries),
            kept[0],
            kept[2],
        )
        ids_to_delete.extend(str(entry[0]) for entry in entries[1:])
    return ids_to_delete


def remove_duplicates_core(connection) -> dict[str, int]:
    """Keep the newest alert per external_id and drop orphaned artifacts.

    Returns the removal counts under the camelCase keys the job API reports.
    """
    stats = {'alertsRemoved': 0, 'rulesRemoved': 0, 'mappingsRemoved': 0}

    ids_to_delete = find_duplicate_alert_ids_core(connection)
    if ids_to_delete:
        placeholders = ','.join('?' for _ in ids_to_delete)
        cursor = connection.execute(f'DELETE FROM alerts WHERE id IN ({placeholders})', ids_to_delete)  # nosec B608
        stats['alertsRemoved'] = max(0, int(cursor.rowcount))

    before = connection.total_changes
    connection.execute('DELETE FROM yara_rules WHERE alert_id IS NULL OR alert_id NOT IN (SELECT id FROM alerts)')
    stats['rulesRemoved'] = int(connection.total_changes - before)

    before = connection.total_changes
    connection.execute(
        'DELETE FROM alert_mitre_mappings WHERE alert_id IS NULL OR alert_id NOT IN (SELECT id FROM alerts)'
    )
    stats['mappingsRemoved'] = int(connection.total_changes - before)

    connection.commit()
    return stats
