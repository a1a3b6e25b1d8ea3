from datetime import datetime, timezone

import pytest

from services.errors import SourceFetchError
from services.source_ingest_service import (
    fetch_nvd_alerts_core,
    fetch_rss_alerts_core,
    fetch_source_alerts_core,
    parse_advisory_feed_core,
    rss_entries_to_candidates_core,
    severity_from_score_core,
    severity_from_text_core,
)


class _FakeResponse:
    def __init__(self, status_code, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f'HTTP {self.status_code}')


def _cve(cve_id, *, v31=None, v2=None, description='Example flaw'):
    metrics = {}
    if v31 is not None:
        metrics['cvssMetricV31'] = [{'cvssData': {'baseScore': v31}}]
    if v2 is not None:
        metrics['cvssMetricV2'] = [{'cvssData': {'baseScore': v2}}]
    return {
        'cve': {
            'id': cve_id,
            'published': '2026-01-10T12:00:00.000',
            'lastModified': '2026-01-11T12:00:00.000',
            'descriptions': [
                {'lang': 'es', 'value': 'Descripcion'},
                {'lang': 'en', 'value': description},
            ],
            'metrics': metrics,
        }
    }


NVD_SOURCE = {'id': 'src-nvd', 'name': 'NIST NVD', 'url': 'https://nvd.test/cves', 'source_type': 'api'}
RSS_SOURCE = {'id': 'src-rss', 'name': 'CISA', 'url': 'https://feeds.test/rss', 'source_type': 'rss'}


def test_severity_from_score_thresholds():
    assert severity_from_score_core(9.0) == 'critical'
    assert severity_from_score_core(8.9) == 'high'
    assert severity_from_score_core(7.0) == 'high'
    assert severity_from_score_core(4.0) == 'medium'
    assert severity_from_score_core(3.9) == 'low'
    assert severity_from_score_core(None) == 'info'


def test_severity_from_text_keywords():
    assert severity_from_text_core('Critical patch available') == 'critical'
    assert severity_from_text_core('Exploited 0-day in VPN') == 'critical'
    assert severity_from_text_core('High risk advisory') == 'high'
    assert severity_from_text_core('Low impact notice') == 'low'
    assert severity_from_text_core('Routine update') == 'medium'


def test_fetch_nvd_alerts_maps_scores_and_sends_api_key():
    calls = []
    payload = {
        'vulnerabilities': [
            _cve('CVE-2026-0001', v31=9.5),
            _cve('CVE-2026-0002', v2=7.2),
            _cve('CVE-2026-0003'),
            {'cve': {'descriptions': []}},
        ]
    }

    def fake_http_get(url, params=None, headers=None, timeout=None):
        calls.append({'url': url, 'params': params, 'headers': headers, 'timeout': timeout})
        return _FakeResponse(200, payload)

    candidates = fetch_nvd_alerts_core(
        NVD_SOURCE,
        deps={
            'http_get': fake_http_get,
            'nvd_api_key': 'secret-key',
            'lookback_days': 7,
            'timeout': 12.0,
            'now_utc': lambda: datetime(2026, 1, 15, 8, 30, tzinfo=timezone.utc),
        },
    )

    assert calls[0]['url'] == 'https://nvd.test/cves'
    assert calls[0]['headers'] == {'apiKey': 'secret-key'}
    assert calls[0]['params'] == {
        'pubStartDate': '2026-01-08T08:30:00.000Z',
        'pubEndDate': '2026-01-15T08:30:00.000Z',
    }
    assert calls[0]['timeout'] == 12.0
    assert [item['severity'] for item in candidates] == ['critical', 'high', 'info']
    first = candidates[0]
    assert first['external_id'] == 'CVE-2026-0001'
    assert first['title'] == 'CVE-2026-0001'
    assert first['description'] == 'Example flaw'
    assert first['url'] == 'https://nvd.nist.gov/vuln/detail/CVE-2026-0001'
    assert first['published_date'] == '2026-01-10T12:00:00.000'
    assert first['updated_date'] == '2026-01-11T12:00:00.000'
    assert first['raw_data']['id'] == 'CVE-2026-0001'


def test_fetch_nvd_alerts_omits_api_key_header_when_unset():
    seen_headers = []

    def fake_http_get(url, params=None, headers=None, timeout=None):
        seen_headers.append(headers)
        return _FakeResponse(200, {'vulnerabilities': []})

    assert fetch_nvd_alerts_core(NVD_SOURCE, deps={'http_get': fake_http_get}) == []
    assert seen_headers == [{}]


def test_fetch_nvd_alerts_raises_on_non_200():
    def fake_http_get(url, params=None, headers=None, timeout=None):
        return _FakeResponse(503, text='Service Unavailable ' + 'x' * 200)

    with pytest.raises(SourceFetchError) as exc_info:
        fetch_nvd_alerts_core(NVD_SOURCE, deps={'http_get': fake_http_get})

    message = str(exc_info.value)
    assert message.startswith('NVD API failed: 503 - Service Unavailable')
    assert len(message) == len('NVD API failed: 503 - ') + 100


RSS_XML = '''<?xml version="1.0"?>
<rss version="2.0"><channel>
  <item>
    <guid>cisa-aa26-001</guid>
    <title>Critical ICS advisory</title>
    <link>https://feeds.test/aa26-001</link>
    <description>&lt;p&gt;Vendors &lt;b&gt;patch&lt;/b&gt; now&lt;/p&gt;</description>
    <pubDate>Wed, 14 Jan 2026 10:00:00 GMT</pubDate>
  </item>
  <item>
    <title>Routine update</title>
    <link>https://feeds.test/routine</link>
  </item>
  <item>
    <title>Low impact notice</title>
  </item>
</channel></rss>
'''


def test_fetch_rss_alerts_builds_candidates_with_identity_fallbacks():
    calls = []

    def fake_http_get(url, headers=None, timeout=None, follow_redirects=False):
        calls.append({'url': url, 'headers': headers, 'follow_redirects': follow_redirects})
        return _FakeResponse(200, text=RSS_XML)

    candidates = fetch_rss_alerts_core(
        RSS_SOURCE,
        deps={
            'http_get': fake_http_get,
            'now_iso': lambda: '2026-01-15T00:00:00+00:00',
            'user_agent': 'AdvisoryWatch-Test/1.0',
            'new_id': lambda: 'generated-id',
        },
    )

    assert calls == [{
        'url': 'https://feeds.test/rss',
        'headers': {'User-Agent': 'AdvisoryWatch-Test/1.0'},
        'follow_redirects': True,
    }]
    assert [item['external_id'] for item in candidates] == [
        'cisa-aa26-001',
        'https://feeds.test/routine',
        'generated-id',
    ]
    assert [item['severity'] for item in candidates] == ['critical', 'medium', 'low']
    first = candidates[0]
    assert first['description'] == 'Vendors patch now'
    assert first['published_date'] == '2026-01-14T10:00:00+00:00'
    assert first['updated_date'] == '2026-01-15T00:00:00+00:00'
    assert candidates[1]['description'] == 'No description'
    assert candidates[1]['published_date'] == '2026-01-15T00:00:00+00:00'


def test_fetch_rss_alerts_wraps_parse_errors():
    def fake_http_get(url, headers=None, timeout=None, follow_redirects=False):
        return _FakeResponse(200, text='<rss><channel><item>')

    with pytest.raises(SourceFetchError):
        fetch_rss_alerts_core(RSS_SOURCE, deps={'http_get': fake_http_get, 'now_iso': lambda: 'now'})


def test_fetch_rss_alerts_propagates_http_errors():
    def fake_http_get(url, headers=None, timeout=None, follow_redirects=False):
        return _FakeResponse(404, text='missing')

    with pytest.raises(RuntimeError, match='HTTP 404'):
        fetch_rss_alerts_core(RSS_SOURCE, deps={'http_get': fake_http_get, 'now_iso': lambda: 'now'})


def test_parse_advisory_feed_reads_atom_entries():
    atom = '''<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>urn:ic3:2026-01</id>
    <title>High severity fraud alert</title>
    <link rel="alternate" href="https://feeds.test/ic3/2026-01"/>
    <summary>Wire fraud scheme</summary>
    <updated>2026-01-12T09:00:00Z</updated>
  </entry>
</feed>
'''
    entries = parse_advisory_feed_core(atom)
    assert len(entries) == 1
    assert entries[0]['guid'] == 'urn:ic3:2026-01'
    assert entries[0]['link'] == 'https://feeds.test/ic3/2026-01'

    candidates = rss_entries_to_candidates_core(entries, now_iso='2026-01-15T00:00:00+00:00')
    assert candidates[0]['severity'] == 'high'
    assert candidates[0]['published_date'] == '2026-01-12T09:00:00+00:00'


def test_fetch_source_alerts_skips_scrape_sources_without_network():
    def fail_http_get(*args, **kwargs):
        raise AssertionError('scrape sources must not fetch')

    source = {'id': 'src-fbi', 'name': 'FBI Cyber Crime', 'url': 'https://fbi.test', 'source_type': 'scrape'}
    assert fetch_source_alerts_core(source, deps={'http_get': fail_http_get}) == []
