import logging
import uuid
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone

from services.errors import SourceFetchError
from services.parsing_utils_service import parse_published_datetime_core, strip_html_core

LOGGER = logging.getLogger(__name__)

NVD_DETAIL_URL = 'https://nvd.nist.gov/vuln/detail/{cve_id}'
_ATOM_NS = {'atom': 'http://www.w3.org/2005/Atom'}


def severity_from_score_core(score: float | None) -> str:
    if score is None:
        return 'info'
    if score >= 9.0:
        return 'critical'
    if score >= 7.0:
        return 'high'
    if score >= 4.0:
        return 'medium'
    return 'low'


def severity_from_text_core(text: str) -> str:
    lowered = str(text or '').lower()
    if 'critical' in lowered or '0-day' in lowered:
        return 'critical'
    if 'high' in lowered:
        return 'high'
    if 'low' in lowered:
        return 'low'
    return 'medium'


def _cvss_base_score(cve: dict[str, object]) -> float | None:
    metrics = cve.get('metrics') if isinstance(cve.get('metrics'), dict) else {}
    for key in ('cvssMetricV31', 'cvssMetricV2'):
        entries = metrics.get(key)
        if isinstance(entries, list) and entries and isinstance(entries[0], dict):
            cvss_data = entries[0].get('cvssData') if isinstance(entries[0].get('cvssData'), dict) else {}
            try:
                return float(cvss_data.get('baseScore') or 0)
            except (TypeError, ValueError):
                return 0.0
    return None


def _english_description(cve: dict[str, object]) -> str:
    descriptions = cve.get('descriptions')
    if isinstance(descriptions, list):
        for item in descriptions:
            if isinstance(item, dict) and item.get('lang') == 'en' and item.get('value'):
                return str(item['value'])
    return 'No description'


def parse_nvd_payload_core(payload: object) -> list[dict[str, object]]:
    if not isinstance(payload, dict):
        return []
    vulnerabilities = payload.get('vulnerabilities')
    if not isinstance(vulnerabilities, list):
        return []
    candidates: list[dict[str, object]] = []
    for vuln in vulnerabilities:
        cve = vuln.get('cve') if isinstance(vuln, dict) else None
        if not isinstance(cve, dict) or not cve.get('id'):
            continue
        cve_id = str(cve['id'])
        candidates.append(
            {
                'external_id': cve_id,
                'title': cve_id,
                'description': _english_description(cve),
                'severity': severity_from_score_core(_cvss_base_score(cve)),
                'published_date': cve.get('published'),
                'updated_date': cve.get('lastModified'),
                'url': NVD_DETAIL_URL.format(cve_id=cve_id),
                'raw_data': cve,
            }
        )
    return candidates


def _nvd_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


def fetch_nvd_alerts_core(source: dict[str, object], *, deps: dict[str, object]) -> list[dict[str, object]]:
    _http_get = deps['http_get']
    _api_key = str(deps.get('nvd_api_key') or '').strip()
    _lookback_days = int(deps.get('lookback_days', 7))
    _timeout = float(deps.get('timeout', 30.0))
    _now = deps.get('now_utc') or (lambda: datetime.now(timezone.utc))

    now_utc = _now()
    window_start = now_utc - timedelta(days=_lookback_days)
    headers: dict[str, str] = {}
    if _api_key:
        headers['apiKey'] = _api_key
    response = _http_get(
        str(source['url']),
        params={'pubStartDate': _nvd_timestamp(window_start), 'pubEndDate': _nvd_timestamp(now_utc)},
        headers=headers,
        timeout=_timeout,
    )
    if response.status_code != 200:
        raise SourceFetchError(
            f'NVD API failed: {response.status_code} - {str(response.text or "")[:100]}'
        )
    return parse_nvd_payload_core(response.json())


def _element_text(element, tag: str, namespaces: dict[str, str] | None = None) -> str | None:
    value = element.findtext(tag, default='', namespaces=namespaces) if namespaces else element.findtext(tag)
    value = (value or '').strip()
    return value or None


def _entry_to_item(element) -> dict[str, object]:
    return {child.tag.split('}', 1)[-1]: (child.text or '').strip() for child in element if child.text}


def parse_advisory_feed_core(xml_text: str) -> list[dict[str, object]]:
    entries: list[dict[str, object]] = []
    root = ET.fromstring(xml_text)

    # RSS
    for item in root.findall('.//item'):
        entries.append(
            {
                'guid': _element_text(item, 'guid'),
                'title': _element_text(item, 'title'),
                'link': _element_text(item, 'link'),
                'summary': _element_text(item, 'description'),
                'published_at': _element_text(item, 'pubDate'),
                'raw': _entry_to_item(item),
            }
        )

    # Atom
    for entry in root.findall('.//atom:entry', _ATOM_NS):
        link_el = entry.find('atom:link[@rel="alternate"]', _ATOM_NS)
        if link_el is None:
            link_el = entry.find('atom:link', _ATOM_NS)
        link = link_el.get('href').strip() if link_el is not None and link_el.get('href') else None
        entries.append(
            {
                'guid': _element_text(entry, 'atom:id', _ATOM_NS),
                'title': _element_text(entry, 'atom:title', _ATOM_NS),
                'link': link,
                'summary': (
                    _element_text(entry, 'atom:summary', _ATOM_NS)
                    or _element_text(entry, 'atom:content', _ATOM_NS)
                ),
                'published_at': (
                    _element_text(entry, 'atom:published', _ATOM_NS)
                    or _element_text(entry, 'atom:updated', _ATOM_NS)
                ),
                'raw': _entry_to_item(entry),
            }
        )
    return entries


def rss_entries_to_candidates_core(
    entries: list[dict[str, object]],
    *,
    now_iso: str,
    new_id=None,
) -> list[dict[str, object]]:
    _new_id = new_id or (lambda: str(uuid.uuid4()))
    candidates: list[dict[str, object]] = []
    for entry in entries:
        title = str(entry.get('title') or '').strip() or 'Untitled advisory'
        summary = strip_html_core(str(entry.get('summary') or ''))
        published_dt = parse_published_datetime_core(str(entry.get('published_at') or ''))
        candidates.append(
            {
                'external_id': str(entry.get('guid') or entry.get('link') or _new_id()),
                'title': title,
                'description': summary or 'No description',
                'severity': severity_from_text_core(f'{title} {summary}'),
                'published_date': published_dt.isoformat() if published_dt is not None else now_iso,
                'updated_date': now_iso,
                'url': entry.get('link'),
                'raw_data': entry.get('raw') or {},
            }
        )
    return candidates


def fetch_rss_alerts_core(source: dict[str, object], *, deps: dict[str, object]) -> list[dict[str, object]]:
    _http_get = deps['http_get']
    _now_iso = deps['now_iso']
    _timeout = float(deps.get('timeout', 30.0))
    _user_agent = str(deps.get('user_agent') or 'AdvisoryWatch/1.0')

    response = _http_get(
        str(source['url']),
        headers={'User-Agent': _user_agent},
        timeout=_timeout,
        follow_redirects=True,
    )
    response.raise_for_status()
    try:
        entries = parse_advisory_feed_core(response.text)
    except ET.ParseError as exc:
        raise SourceFetchError(f'Feed parse failed for {source.get("name")}: {exc}') from exc
    return rss_entries_to_candidates_core(entries, now_iso=_now_iso(), new_id=deps.get('new_id'))


def fetch_scraped_alerts_core(source: dict[str, object], *, deps: dict[str, object]) -> list[dict[str, object]]:
    _ = deps
    # Per-source HTML parsers are supplied outside the core pipeline.
    LOGGER.warning('Scraping not implemented for %s (%s). Skipping.', source.get('name'), source.get('url'))
    return []


def fetch_source_alerts_core(source: dict[str, object], *, deps: dict[str, object]) -> list[dict[str, object]]:
    source_type = str(source.get('source_type') or '').strip().lower()
    if source_type == 'api':
        return fetch_nvd_alerts_core(source, deps=deps)
    if source_type == 'rss':
        return fetch_rss_alerts_core(source, deps=deps)
    if source_type == 'scrape':
        return fetch_scraped_alerts_core(source, deps=deps)
    LOGGER.warning('Unknown source type %r for %s', source_type, source.get('name'))
    return []
