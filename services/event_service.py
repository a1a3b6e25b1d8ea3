"""
Internal event system.

In standalone mode all emit() calls are no-ops. When AdvisoryWatch runs
inside a larger platform, the host registers handlers via on() at startup
and receives events for notifications and audit logging.

Event names follow the pattern  <resource>.<action>:
    job.completed
    rule.updated    rule.deleted
"""
from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

# { event_name: [handler, ...] }
_handlers: dict[str, list[Callable[[Any], None]]] = {}


def on(event: str, handler: Callable[[Any], None]) -> None:
    """Subscribe *handler* to *event*; repeated calls add it again."""
    _handlers.setdefault(event, []).append(handler)


def off(event: str, handler: Callable[[Any], None]) -> None:
    """Remove one subscription of *handler*; unknown handlers are ignored."""
    if handler in _handlers.get(event, []):
        _handlers[event].remove(handler)


def clear() -> None:
    _handlers.clear()


def emit(event: str, payload: Any = None) -> None:
    """
    Fire all handlers registered for *event*.

    Handler exceptions are logged and do not propagate to the job or
    request that emitted the event.
    """
    for handler in list(_handlers.get(event, [])):
        try:
            handler(payload)
        except Exception:
            logger.exception('event_service: handler error for event %r', event)
