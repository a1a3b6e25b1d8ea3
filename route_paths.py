HEALTH = '/health'

API_STATS = '/api/stats'
API_ALERTS = '/api/alerts'
API_ALERT_REPROCESS = '/api/alerts/{alert_id}/reprocess'
API_RULES = '/api/yara-rules'
API_RULE = '/api/yara-rules/{rule_id}'
API_TECHNIQUES = '/api/mitre-techniques'
API_MAPPINGS = '/api/mitre-mappings'
API_SOURCES = '/api/alert-sources'
API_PROCESSING_LOGS = '/api/processing-logs'
API_METRICS = '/api/metrics'

JOB_STATUS = '/api/jobs/status'
JOB_SYNC = '/api/jobs/sync'
JOB_DEDUPLICATE = '/api/jobs/deduplicate'
JOB_REPROCESS = '/api/jobs/reprocess'
