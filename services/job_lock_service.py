from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock

from services.errors import JobConflictError


class JobLock:
    """Process-wide gate for pipeline jobs.

    Acquisition never waits: a second job is rejected with JobConflictError
    naming the job that holds the gate.
    """

    def __init__(self, clock=None):
        self._guard = Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc).isoformat())
        self._running = False
        self._current_job: str | None = None
        self._started_at: str | None = None

    def try_acquire(self, job_name: str) -> None:
        with self._guard:
            if self._running:
                raise JobConflictError(str(self._current_job), self._started_at)
            self._running = True
            self._current_job = job_name
            self._started_at = self._clock()

    def release(self, job_name: str) -> bool:
        with self._guard:
            if not self._running or self._current_job != job_name:
                return False
            self._running = False
            self._current_job = None
            self._started_at = None
            return True

    @contextmanager
    def hold(self, job_name: str):
        self.try_acquire(job_name)
        try:
            yield self
        finally:
            self.release(job_name)

    def snapshot(self) -> dict[str, object]:
        with self._guard:
            return {
                'running': self._running,
                'current_job': self._current_job,
                'started_at': self._started_at,
            }
