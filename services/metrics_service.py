from datetime import datetime, timezone
from threading import Lock
import re


_METRICS_LOCK = Lock()
_COUNTERS: dict[str, int] = {}
_REQUESTS_BY_ROUTE: dict[str, int] = {}
_REQUESTS_BY_STATUS: dict[str, int] = {}


def _inc_counter(name: str, amount: int = 1) -> None:
    _COUNTERS[name] = int(_COUNTERS.get(name, 0)) + int(amount)


def normalize_path_core(path: str) -> str:
    normalized = str(path or '').strip() or '/'
    normalized = re.sub(
        r'\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b',
        ':id',
        normalized,
    )
    normalized = re.sub(r'/\d+', '/:id', normalized)
    return normalized


def record_request_core(*, method: str, path: str, status_code: int) -> None:
    route_key = f"{str(method or '').upper()} {normalize_path_core(path)}"
    status_bucket = f'{int(status_code) // 100}xx'
    with _METRICS_LOCK:
        _inc_counter('requests_total')
        _REQUESTS_BY_ROUTE[route_key] = int(_REQUESTS_BY_ROUTE.get(route_key, 0)) + 1
        _REQUESTS_BY_STATUS[status_bucket] = int(_REQUESTS_BY_STATUS.get(status_bucket, 0)) + 1


def _count_process_results(process_results: list[dict[str, object]]) -> None:
    failed = sum(1 for item in process_results if item.get('status') == 'error')
    _inc_counter('alerts_processed_total', len(process_results) - failed)
    _inc_counter('alerts_process_failed_total', failed)


def record_sync_core(*, fetch_results: list[dict[str, object]], process_results: list[dict[str, object]]) -> None:
    with _METRICS_LOCK:
        _inc_counter('sync_runs_total')
        for item in fetch_results:
            if item.get('status') == 'success':
                _inc_counter('source_fetch_success_total')
                _inc_counter('alerts_fetched_total', max(0, int(item.get('alerts') or 0)))
            else:
                _inc_counter('source_fetch_failed_total')
        _count_process_results(process_results)


def record_process_core(*, process_results: list[dict[str, object]]) -> None:
    with _METRICS_LOCK:
        _inc_counter('reprocess_runs_total')
        _count_process_results(process_results)


def record_dedup_core(*, stats: dict[str, int]) -> None:
    with _METRICS_LOCK:
        _inc_counter('dedup_runs_total')
        _inc_counter('dedup_alerts_removed_total', max(0, int(stats.get('alertsRemoved') or 0)))
        _inc_counter('dedup_rules_removed_total', max(0, int(stats.get('rulesRemoved') or 0)))
        _inc_counter('dedup_mappings_removed_total', max(0, int(stats.get('mappingsRemoved') or 0)))


def record_job_conflict_core(*, job_name: str) -> None:
    with _METRICS_LOCK:
        _inc_counter('job_conflicts_total')
        _inc_counter(f'job_conflicts_{job_name}_total')


def snapshot_metrics_core() -> dict[str, object]:
    with _METRICS_LOCK:
        return {
            'generated_at': datetime.now(timezone.utc).isoformat(),
            'counters': dict(_COUNTERS),
            'requests_by_route': dict(_REQUESTS_BY_ROUTE),
            'requests_by_status': dict(_REQUESTS_BY_STATUS),
        }


def reset_metrics_core() -> None:
    with _METRICS_LOCK:
        _COUNTERS.clear()
        _REQUESTS_BY_ROUTE.clear()
        _REQUESTS_BY_STATUS.clear()
