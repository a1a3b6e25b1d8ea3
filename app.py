import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import httpx
import routes.routes_api as routes_api
import routes.routes_jobs as routes_jobs
import services.app_config_service as app_config_service
import services.app_wiring_service as app_wiring_service
import services.db_schema_service as db_schema_service
import services.deduplication_service as deduplication_service
import services.event_service as event_service
import services.http_middleware_service as http_middleware_service
import services.job_ops_service as job_ops_service
import services.metrics_service as metrics_service
import services.query_service as query_service
import services.rule_generation_service as rule_generation_service
import services.rule_ops_service as rule_ops_service
import services.runtime_service as runtime_service
import services.source_ingest_service as source_ingest_service
import services.technique_mapping_service as technique_mapping_service
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pipelines.alert_ingest import fetch_alerts_core as pipeline_fetch_alerts_core
from pipelines.alert_processing import process_alerts_core as pipeline_process_alerts_core
from services.job_lock_service import JobLock


@asynccontextmanager
async def app_lifespan(_: FastAPI):
    initialize_sqlite()
    yield


app = FastAPI(title=app_config_service.APP_NAME, lifespan=app_lifespan)
DB_PATH = app_config_service.DB_PATH
BASE_DIR = Path(__file__).resolve().parent
SEED_SOURCES = app_config_service.SEED_SOURCES
NVD_API_KEY = app_config_service.NVD_API_KEY
NVD_LOOKBACK_DAYS = app_config_service.NVD_LOOKBACK_DAYS
SOURCE_FETCH_TIMEOUT_SECONDS = app_config_service.SOURCE_FETCH_TIMEOUT_SECONDS
USER_AGENT = app_config_service.USER_AGENT
PROCESS_BATCH_LIMIT = app_config_service.PROCESS_BATCH_LIMIT
REQUEST_BODY_LIMIT_BYTES = app_config_service.REQUEST_BODY_LIMIT_BYTES
JOB_LOCK = JobLock()

LOGGER = logging.getLogger('advisorywatch')
if not LOGGER.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter('%(message)s'))
    LOGGER.addHandler(_handler)
LOGGER.setLevel(logging.INFO)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _log_event(event: str, **fields: object) -> None:
    runtime_service.log_event_core(event=event, fields=fields, utc_now_iso=utc_now_iso, logger=LOGGER)


def _resolve_startup_db_path() -> str:
    return runtime_service.resolve_startup_db_path_core(
        db_path=DB_PATH,
        fallback_path=str(BASE_DIR / 'advisorywatch.db'),
        makedirs=os.makedirs,
    )


def _connect():
    return db_schema_service.connect_core(DB_PATH)


def initialize_sqlite() -> None:
    global DB_PATH
    DB_PATH = db_schema_service.initialize_sqlite_core(
        deps={
            'resolve_startup_db_path': _resolve_startup_db_path,
            'sqlite_connect': db_schema_service.connect_core,
            'seed_sources': SEED_SOURCES,
        }
    )
    _log_event('store_initialized', db_path=DB_PATH, schema_version=db_schema_service.SCHEMA_VERSION)


def _fetch_source_alerts(source: dict[str, object]) -> list[dict[str, object]]:
    return source_ingest_service.fetch_source_alerts_core(
        source,
        deps={
            'http_get': httpx.get,
            'nvd_api_key': NVD_API_KEY,
            'lookback_days': NVD_LOOKBACK_DAYS,
            'timeout': SOURCE_FETCH_TIMEOUT_SECONDS,
            'user_agent': USER_AGENT,
            'now_iso': utc_now_iso,
            'new_id': _new_id,
        },
    )


def fetch_alerts(connection) -> list[dict[str, object]]:
    return pipeline_fetch_alerts_core(
        connection,
        deps={
            'fetch_source_alerts': _fetch_source_alerts,
            'now_iso': utc_now_iso,
            'new_id': _new_id,
            'log_event': _log_event,
        },
    )


def process_alerts(connection) -> list[dict[str, object]]:
    return pipeline_process_alerts_core(
        connection,
        deps={
            'generate_rule': rule_generation_service.generate_detection_rule_core,
            'map_techniques': technique_mapping_service.map_alert_techniques_core,
            'store_mappings': technique_mapping_service.store_alert_mappings_core,
            'now_iso': utc_now_iso,
            'new_id': _new_id,
            'batch_limit': PROCESS_BATCH_LIMIT,
            'log_event': _log_event,
        },
    )


def _job_deps() -> dict[str, object]:
    return {
        'job_lock': JOB_LOCK,
        'connect': _connect,
        'fetch_alerts': fetch_alerts,
        'process_alerts': process_alerts,
        'remove_duplicates': deduplication_service.remove_duplicates_core,
        'log_event': _log_event,
        'metrics_service': metrics_service,
        'emit': event_service.emit,
    }


def run_sync_job() -> dict[str, object]:
    return job_ops_service.run_sync_job_core(deps=_job_deps())


def run_deduplicate_job() -> dict[str, object]:
    return job_ops_service.run_deduplicate_job_core(deps=_job_deps())


def run_reprocess_job() -> dict[str, object]:
    return job_ops_service.run_reprocess_job_core(deps=_job_deps())


def reprocess_alert(alert_id: str) -> dict[str, object]:
    return job_ops_service.reprocess_single_alert_core(alert_id, deps=_job_deps())


def _rule_deps() -> dict[str, object]:
    return {
        'connect': _connect,
        'utc_now_iso': utc_now_iso,
        'log_event': _log_event,
        'emit': event_service.emit,
    }


def update_rule(rule_id: str, *, rule_content: str | None = None, is_locked: bool | None = None) -> dict[str, object]:
    return rule_ops_service.update_rule_core(
        rule_id,
        rule_content=rule_content,
        is_locked=is_locked,
        deps=_rule_deps(),
    )


def delete_rule(rule_id: str) -> dict[str, object]:
    return rule_ops_service.delete_rule_core(rule_id, deps=_rule_deps())


def _on_job_conflict(requested_job: str, exc) -> None:
    metrics_service.record_job_conflict_core(job_name=requested_job)
    _log_event(
        'job_conflict',
        requested_job=requested_job,
        running_job=exc.current_job,
        started_at=exc.started_at,
    )


def _request_body_limit_bytes(method: str) -> int:
    if str(method or '').upper() in {'POST', 'PUT', 'PATCH'}:
        return REQUEST_BODY_LIMIT_BYTES
    return 0


@app.middleware('http')
async def add_security_headers(request: Request, call_next):
    return await http_middleware_service.add_security_headers_core(
        request=request,
        call_next=call_next,
        deps={
            'metrics_service': metrics_service,
            'log_event': _log_event,
            'request_body_limit_bytes': _request_body_limit_bytes,
            'json_response_cls': JSONResponse,
        },
    )


def _register_routers() -> None:
    app_wiring_service.register_routers(
        app,
        deps={
            'routes_api': routes_api,
            'routes_jobs': routes_jobs,
            'connect': _connect,
            'query_service': query_service,
            'default_page_size': app_config_service.DEFAULT_PAGE_SIZE,
            'max_page_size': app_config_service.MAX_PAGE_SIZE,
            'job_status': lambda: JOB_LOCK.snapshot(),
            'metrics_snapshot': metrics_service.snapshot_metrics_core,
            'run_sync_job': run_sync_job,
            'run_deduplicate_job': run_deduplicate_job,
            'run_reprocess_job': run_reprocess_job,
            'reprocess_alert': reprocess_alert,
            'update_rule': update_rule,
            'delete_rule': delete_rule,
            'on_job_conflict': _on_job_conflict,
        },
    )


_register_routers()
