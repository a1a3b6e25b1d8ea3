import json
import logging
import uuid

from services.parsing_utils_service import is_unique_conflict_core

LOGGER = logging.getLogger(__name__)


def list_active_sources_core(connection) -> list[dict[str, object]]:
    rows = connection.execute(
        '''
        SELECT id, name, url, source_type, is_active, last_checked_at, check_frequency_minutes
        FROM alert_sources
        WHERE is_active = 1
        ORDER BY created_at ASC, name ASC
        '''
    ).fetchall()
    return [
        {
            'id': str(row[0]),
            'name': str(row[1]),
            'url': str(row[2]),
            'source_type': str(row[3]),
            'is_active': bool(row[4]),
            'last_checked_at': row[5],
            'check_frequency_minutes': int(row[6] or 60),
        }
        for row in rows
    ]


def upsert_alert_core(
    connection,
    *,
    source_id: str,
    candidate: dict[str, object],
    now_iso: str,
    new_id,
) -> None:
    connection.execute(
        '''
        INSERT INTO alerts (
            id, source_id, external_id, title, description, severity,
            published_date, updated_date, url, raw_data, is_processed, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
        ON CONFLICT(source_id, external_id) DO UPDATE SET
            title = excluded.title,
            description = excluded.description,
            severity = excluded.severity,
            updated_date = excluded.updated_date,
            updated_at = excluded.updated_at,
            is_processed = 0
        ''',
        (
            new_id(),
            source_id,
            str(candidate['external_id']),
            str(candidate.get('title') or ''),
            str(candidate.get('description') or ''),
            candidate.get('severity'),
            candidate.get('published_date'),
            candidate.get('updated_date'),
            candidate.get('url'),
            json.dumps(candidate.get('raw_data'), default=str),
            now_iso,
        ),
    )


def ingest_source_candidates_core(
    connection,
    *,
    source_id: str,
    candidates: list[dict[str, object]],
    now_iso: str,
    new_id,
) -> int:
    """Upsert one source's candidates inside a single transaction.

    Unique conflicts are absorbed by the upsert; any other row error rolls the
    whole batch back and is re-raised for the caller to record.
    """
    upserted = 0
    if connection.in_transaction:
        connection.commit()
    connection.execute('BEGIN')
    try:
        for candidate in candidates:
            try:
                upsert_alert_core(
                    connection,
                    source_id=source_id,
                    candidate=candidate,
                    now_iso=now_iso,
                    new_id=new_id,
                )
                upserted += 1
            except Exception as exc:
                if not is_unique_conflict_core(exc):
                    raise
                LOGGER.warning('Conflict inserting alert %s: %s', candidate.get('external_id'), exc)
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    return upserted


def append_processing_log_core(
    connection,
    *,
    source_id: str | None,
    status: str,
    alerts_found: int = 0,
    error_message: str | None = None,
    now_iso: str,
    new_id,
) -> None:
    connection.execute(
        '''
        INSERT INTO processing_logs (id, source_id, status, alerts_found, error_message, processed_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ''',
        (new_id(), source_id, status, int(alerts_found), error_message, now_iso),
    )
    connection.commit()


def fetch_alerts_core(connection, *, deps: dict[str, object]) -> list[dict[str, object]]:
    _fetch_source_alerts = deps['fetch_source_alerts']
    _now_iso = deps['now_iso']
    _new_id = deps.get('new_id') or (lambda: str(uuid.uuid4()))
    _log_event = deps.get('log_event')

    results: list[dict[str, object]] = []
    for source in list_active_sources_core(connection):
        try:
            candidates = _fetch_source_alerts(source)
            LOGGER.info('Fetched %d alerts from %s', len(candidates), source['name'])
            ingest_source_candidates_core(
                connection,
                source_id=str(source['id']),
                candidates=candidates,
                now_iso=_now_iso(),
                new_id=_new_id,
            )
            connection.execute(
                'UPDATE alert_sources SET last_checked_at = ? WHERE id = ?',
                (_now_iso(), source['id']),
            )
            append_processing_log_core(
                connection,
                source_id=str(source['id']),
                status='success',
                alerts_found=len(candidates),
                now_iso=_now_iso(),
                new_id=_new_id,
            )
            results.append({'source': source['name'], 'alerts': len(candidates), 'status': 'success'})
        except Exception as exc:
            if connection.in_transaction:
                connection.rollback()
            LOGGER.error('Error fetching from %s: %s', source['name'], exc)
            if callable(_log_event):
                _log_event('source_fetch_failed', source=source['name'], error=str(exc))
            append_processing_log_core(
                connection,
                source_id=str(source['id']),
                status='error',
                error_message=str(exc),
                now_iso=_now_iso(),
                new_id=_new_id,
            )
            results.append({'source': source['name'], 'status': 'error', 'error': str(exc)})
    return results
