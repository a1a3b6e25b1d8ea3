import json
from pathlib import Path


def log_event_core(*, event: str, fields: dict[str, object], utc_now_iso, logger) -> None:
    payload = {'event': event, **fields, 'ts': utc_now_iso()}
    try:
        logger.info(json.dumps(payload, separators=(',', ':'), default=str))
    except (TypeError, ValueError):
        logger.info(str(payload))


def prepare_db_path_core(path_value: str, *, makedirs) -> str:
    makedirs(str(Path(path_value).resolve().parent), exist_ok=True)
    return path_value


def resolve_startup_db_path_core(*, db_path: str, fallback_path: str, makedirs) -> str:
    """Create the database directory, falling back to the app directory when
    the configured location is not writable."""
    try:
        return prepare_db_path_core(db_path, makedirs=makedirs)
    except PermissionError:
        return prepare_db_path_core(fallback_path, makedirs=makedirs)
