"""
Job and command routes.

Pipeline jobs run synchronously inside the request; the shared JobLock turns
a concurrent trigger into a 409 that names the running job.
"""
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import route_paths
from services.errors import JobConflictError, RecordNotFoundError, RuleLockedError


class RuleUpdateRequest(BaseModel):
    rule_content: str | None = Field(default=None, min_length=1)
    is_locked: bool | None = None


def create_jobs_router(*, deps: dict[str, object]) -> APIRouter:
    router = APIRouter()

    _run_sync_job = deps['run_sync_job']
    _run_deduplicate_job = deps['run_deduplicate_job']
    _run_reprocess_job = deps['run_reprocess_job']
    _reprocess_alert = deps['reprocess_alert']
    _update_rule = deps['update_rule']
    _delete_rule = deps['delete_rule']
    _on_job_conflict = deps.get('on_job_conflict')

    def _conflict_response(exc: JobConflictError, requested_job: str) -> JSONResponse:
        if callable(_on_job_conflict):
            _on_job_conflict(requested_job, exc)
        return JSONResponse(
            status_code=409,
            content={'detail': str(exc), 'running_job': exc.current_job},
        )

    @router.post(route_paths.JOB_SYNC)
    def sync_job():
        try:
            return _run_sync_job()
        except JobConflictError as exc:
            return _conflict_response(exc, 'sync')

    @router.post(route_paths.JOB_DEDUPLICATE)
    def deduplicate_job():
        try:
            return _run_deduplicate_job()
        except JobConflictError as exc:
            return _conflict_response(exc, 'deduplicate')

    @router.post(route_paths.JOB_REPROCESS)
    def reprocess_job():
        try:
            return _run_reprocess_job()
        except JobConflictError as exc:
            return _conflict_response(exc, 'reprocess')

    @router.post(route_paths.API_ALERT_REPROCESS)
    def reprocess_alert(alert_id: str):
        try:
            return _reprocess_alert(alert_id)
        except JobConflictError as exc:
            return _conflict_response(exc, 'reprocess_alert')
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail='Alert not found') from exc

    @router.put(route_paths.API_RULE)
    def update_rule(rule_id: str, payload: RuleUpdateRequest) -> dict:
        try:
            return _update_rule(rule_id, rule_content=payload.rule_content, is_locked=payload.is_locked)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail='Rule not found') from exc

    @router.delete(route_paths.API_RULE)
    def delete_rule(rule_id: str) -> dict:
        try:
            return _delete_rule(rule_id)
        except RuleLockedError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail='Rule not found') from exc

    return router
