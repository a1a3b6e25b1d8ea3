from fastapi import APIRouter, HTTPException

import route_paths


def create_api_router(*, deps: dict[str, object]) -> APIRouter:
    router = APIRouter()

    _connect = deps['connect']
    _query_service = deps['query_service']
    _default_page_size = int(deps['default_page_size'])
    _max_page_size = int(deps['max_page_size'])
    _job_status = deps['job_status']
    _metrics_snapshot = deps.get('metrics_snapshot')

    def _severity_or_400(severity: str | None) -> str | None:
        try:
            return _query_service.normalize_severity_filter_core(severity)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    def _page(limit: int | None, offset: int | None) -> tuple[int, int]:
        return _query_service.clamp_page_core(
            limit,
            offset,
            default_limit=_default_page_size,
            max_limit=_max_page_size,
        )

    @router.get(route_paths.HEALTH)
    def health() -> dict[str, str]:
        return {'status': 'ok'}

    @router.get(route_paths.API_STATS)
    def stats() -> dict[str, int]:
        with _connect() as connection:
            return _query_service.stats_core(connection)

    @router.get(route_paths.API_ALERTS)
    def list_alerts(severity: str | None = None, limit: int | None = None, offset: int | None = None) -> dict:
        severity_filter = _severity_or_400(severity)
        safe_limit, safe_offset = _page(limit, offset)
        with _connect() as connection:
            return _query_service.list_alerts_core(
                connection,
                severity=severity_filter,
                limit=safe_limit,
                offset=safe_offset,
            )

    @router.get(route_paths.API_RULES)
    def list_rules(severity: str | None = None, limit: int | None = None, offset: int | None = None) -> dict:
        severity_filter = _severity_or_400(severity)
        safe_limit, safe_offset = _page(limit, offset)
        with _connect() as connection:
            return _query_service.list_rules_core(
                connection,
                severity=severity_filter,
                limit=safe_limit,
                offset=safe_offset,
            )

    @router.get(route_paths.API_TECHNIQUES)
    def list_techniques() -> list[dict]:
        with _connect() as connection:
            return _query_service.list_techniques_core(connection)

    @router.get(route_paths.API_MAPPINGS)
    def list_mappings(severity: str | None = None) -> list[dict]:
        severity_filter = _severity_or_400(severity)
        with _connect() as connection:
            return _query_service.list_mappings_core(connection, severity=severity_filter)

    @router.get(route_paths.API_SOURCES)
    def list_sources() -> list[dict]:
        with _connect() as connection:
            return _query_service.list_sources_core(connection)

    @router.get(route_paths.API_PROCESSING_LOGS)
    def list_processing_logs(limit: int | None = None, offset: int | None = None) -> dict:
        safe_limit, safe_offset = _page(limit, offset)
        with _connect() as connection:
            return _query_service.list_processing_logs_core(connection, limit=safe_limit, offset=safe_offset)

    @router.get(route_paths.JOB_STATUS)
    def job_status() -> dict:
        return _job_status()

    @router.get(route_paths.API_METRICS)
    def metrics() -> dict:
        if not callable(_metrics_snapshot):
            raise HTTPException(status_code=404, detail='metrics unavailable')
        return _metrics_snapshot()

    return router
