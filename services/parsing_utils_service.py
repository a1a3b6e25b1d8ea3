import html
import json
import re
import sqlite3
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime


def safe_json_string_list_core(value: str | None) -> list[str]:
    if not value:
        return []
    try:
        parsed = json.loads(value)
        if not isinstance(parsed, list):
            return []
        result: list[str] = []
        for item in parsed:
            if isinstance(item, str):
                result.append(item)
        return result
    except Exception:
        return []


def safe_json_payload_core(value: str | None) -> object | None:
    # raw_data is stored opaque; anything undecodable is surfaced as None.
    if not value:
        return None
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return None


def parse_published_datetime_core(value: str | None) -> datetime | None:
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        dt = datetime.fromisoformat(text.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except Exception:
        pass
    try:
        dt = parsedate_to_datetime(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except Exception:
        return None


def strip_html_core(value: str) -> str:
    value = re.sub(r'<script[\s\S]*?</script>', ' ', value, flags=re.IGNORECASE)
    value = re.sub(r'<style[\s\S]*?</style>', ' ', value, flags=re.IGNORECASE)
    value = re.sub(r'<[^>]+>', ' ', value)
    value = html.unescape(value)
    value = re.sub(r'\s+', ' ', value).strip()
    return value


def is_unique_conflict_core(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.IntegrityError) and 'UNIQUE constraint failed' in str(exc)
