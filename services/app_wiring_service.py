def register_routers(app, *, deps: dict[str, object]) -> None:
    routes_api = deps['routes_api']
    routes_jobs = deps['routes_jobs']

    app.include_router(
        routes_api.create_api_router(
            deps={
                'connect': deps['connect'],
                'query_service': deps['query_service'],
                'default_page_size': deps['default_page_size'],
                'max_page_size': deps['max_page_size'],
                'job_status': deps['job_status'],
                'metrics_snapshot': deps.get('metrics_snapshot'),
            }
        )
    )

    app.include_router(
        routes_jobs.create_jobs_router(
            deps={
                'run_sync_job': deps['run_sync_job'],
                'run_deduplicate_job': deps['run_deduplicate_job'],
                'run_reprocess_job': deps['run_reprocess_job'],
                'reprocess_alert': deps['reprocess_alert'],
                'update_rule': deps['update_rule'],
                'delete_rule': deps['delete_rule'],
                'on_job_conflict': deps.get('on_job_conflict'),
            }
        )
    )
