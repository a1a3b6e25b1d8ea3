"""
Seed catalog of monitored advisory sources.

Each entry is (name, url, source_type, check_frequency_minutes). The catalog
is only written to an empty store; existing rows are never overwritten except
by the legacy migrations below.
"""

SOURCE_TYPES: tuple[str, ...] = ('api', 'rss', 'scrape')

SEED_SOURCES: list[tuple[str, str, str, int]] = [
    ('CISA Advisories', 'https://www.cisa.gov/cybersecurity-advisories/all.xml', 'rss', 60),
    ('FBI IC3 Alerts', 'https://www.ic3.gov/CSA/RSS', 'rss', 120),
    ('NIST NVD', 'https://services.nvd.nist.gov/rest/json/cves/2.0', 'api', 60),
    ('FBI Cyber Crime', 'https://www.fbi.gov/investigate/cyber', 'scrape', 180),
]

# Older databases seeded these sources as scrape targets before their RSS
# endpoints existed. Maps source name -> rss url.
LEGACY_SCRAPE_TO_RSS: dict[str, str] = {
    'CISA Advisories': 'https://www.cisa.gov/cybersecurity-advisories/all.xml',
    'FBI IC3 Alerts': 'https://www.ic3.gov/CSA/RSS',
}
