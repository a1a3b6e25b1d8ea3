class SourceFetchError(RuntimeError):
    """Raised when a source returns an unusable response."""


class JobConflictError(RuntimeError):
    def __init__(self, current_job: str, started_at: str | None):
        self.current_job = current_job
        self.started_at = started_at
        super().__init__(f"Job '{current_job}' is currently running (started at {started_at})")


class RuleLockedError(RuntimeError):
    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__('Cannot delete locked rule')


class RecordNotFoundError(LookupError):
    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f'{kind} not found')
