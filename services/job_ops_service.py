import time

from services.errors import RecordNotFoundError


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def run_sync_job_core(*, deps: dict[str, object]) -> dict[str, object]:
    _job_lock = deps['job_lock']
    _connect = deps['connect']
    _fetch_alerts = deps['fetch_alerts']
    _process_alerts = deps['process_alerts']
    _log_event = deps['log_event']
    _metrics_service = deps['metrics_service']
    _emit = deps.get('emit')

    with _job_lock.hold('sync'):
        started = time.perf_counter()
        _log_event('sync_job_started')
        with _connect() as connection:
            fetch_results = _fetch_alerts(connection)
            process_results = _process_alerts(connection)
        _metrics_service.record_sync_core(fetch_results=fetch_results, process_results=process_results)
        _log_event(
            'sync_job_complete',
            sources=len(fetch_results),
            source_errors=sum(1 for item in fetch_results if item.get('status') == 'error'),
            processed=len(process_results),
            duration_ms=_elapsed_ms(started),
        )
    result = {'status': 'success', 'fetch': fetch_results, 'process': process_results}
    if callable(_emit):
        _emit('job.completed', {'job': 'sync', **result})
    return result


def run_deduplicate_job_core(*, deps: dict[str, object]) -> dict[str, object]:
    _job_lock = deps['job_lock']
    _connect = deps['connect']
    _remove_duplicates = deps['remove_duplicates']
    _log_event = deps['log_event']
    _metrics_service = deps['metrics_service']
    _emit = deps.get('emit')

    with _job_lock.hold('deduplicate'):
        started = time.perf_counter()
        with _connect() as connection:
            stats = _remove_duplicates(connection)
        _metrics_service.record_dedup_core(stats=stats)
        _log_event('dedup_complete', duration_ms=_elapsed_ms(started), **stats)
    result = {'status': 'success', 'stats': stats}
    if callable(_emit):
        _emit('job.completed', {'job': 'deduplicate', **result})
    return result


def run_reprocess_job_core(*, deps: dict[str, object]) -> dict[str, object]:
    _job_lock = deps['job_lock']
    _connect = deps['connect']
    _process_alerts = deps['process_alerts']
    _remove_duplicates = deps['remove_duplicates']
    _log_event = deps['log_event']
    _metrics_service = deps['metrics_service']
    _emit = deps.get('emit')

    with _job_lock.hold('reprocess'):
        started = time.perf_counter()
        with _connect() as connection:
            connection.execute('UPDATE alerts SET is_processed = 0')
            connection.commit()
            process_results = _process_alerts(connection)
            dedupe_stats = _remove_duplicates(connection)
        _metrics_service.record_process_core(process_results=process_results)
        _metrics_service.record_dedup_core(stats=dedupe_stats)
        _log_event(
            'reprocess_job_complete',
            processed=len(process_results),
            duration_ms=_elapsed_ms(started),
            **dedupe_stats,
        )
    result = {'status': 'success', 'process': process_results, 'deduplication': dedupe_stats}
    if callable(_emit):
        _emit('job.completed', {'job': 'reprocess', **result})
    return result


def reprocess_single_alert_core(alert_id: str, *, deps: dict[str, object]) -> dict[str, object]:
    _job_lock = deps['job_lock']
    _connect = deps['connect']
    _process_alerts = deps['process_alerts']
    _log_event = deps['log_event']

    # Held under its own name so a full job cannot start mid-run.
    with _job_lock.hold('reprocess_alert'):
        with _connect() as connection:
            row = connection.execute('SELECT id FROM alerts WHERE id = ?', (alert_id,)).fetchone()
            if row is None:
                raise RecordNotFoundError('alert', alert_id)
            connection.execute('UPDATE alerts SET is_processed = 0 WHERE id = ?', (alert_id,))
            connection.commit()
            stats = _process_alerts(connection)
        _log_event('alert_reprocessed', alert_id=alert_id, processed=len(stats))
    return {'status': 'success', 'stats': stats}
