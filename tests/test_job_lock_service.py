import pytest

from services.errors import JobConflictError
from services.job_lock_service import JobLock


def test_second_job_is_rejected_with_running_job_name():
    lock = JobLock(clock=lambda: '2026-01-15T00:00:00+00:00')
    lock.try_acquire('reprocess')

    with pytest.raises(JobConflictError) as exc_info:
        lock.try_acquire('sync')

    assert exc_info.value.current_job == 'reprocess'
    assert str(exc_info.value) == "Job 'reprocess' is currently running (started at 2026-01-15T00:00:00+00:00)"
    assert lock.snapshot() == {
        'running': True,
        'current_job': 'reprocess',
        'started_at': '2026-01-15T00:00:00+00:00',
    }


def test_release_only_clears_for_owner():
    lock = JobLock()
    lock.try_acquire('sync')

    assert lock.release('deduplicate') is False
    assert lock.snapshot()['running'] is True
    assert lock.release('sync') is True
    assert lock.snapshot() == {'running': False, 'current_job': None, 'started_at': None}


def test_hold_releases_after_failure():
    lock = JobLock()

    with pytest.raises(RuntimeError):
        with lock.hold('deduplicate'):
            raise RuntimeError('boom')

    assert lock.snapshot()['running'] is False
    with lock.hold('sync'):
        assert lock.snapshot()['current_job'] == 'sync'
    assert lock.snapshot()['running'] is False
