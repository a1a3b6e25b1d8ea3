import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolated_runtime_state():
    from services import event_service, metrics_service

    metrics_service.reset_metrics_core()
    event_service.clear()
    yield
    event_service.clear()
