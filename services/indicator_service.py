import re

ATTACK_TYPES: tuple[str, ...] = ('sql_injection', 'xss', 'path_traversal', 'command_injection', 'rce')
MAX_MATCHES_PER_PATTERN = 5

_MD5_RE = re.compile(r'\b[a-f0-9]{32}\b', re.IGNORECASE)
_SHA1_RE = re.compile(r'\b[a-f0-9]{40}\b', re.IGNORECASE)
_SHA256_RE = re.compile(r'\b[a-f0-9]{64}\b', re.IGNORECASE)
_IPV4_RE = re.compile(r'\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b')
_DOMAIN_RE = re.compile(
    r'\b(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9][a-z0-9-]{0,61}[a-z0-9]\b',
    re.IGNORECASE,
)


def _is_reportable_domain(value: str) -> bool:
    # Lexical heuristic against vendor and boilerplate domains.
    return not value.endswith('.com') and not value.endswith('.org') and 'example' not in value


def extract_indicators_core(text: str) -> dict[str, list[str]]:
    """Pull hash, IPv4 and domain shaped tokens out of free text.

    Each pattern class is capped separately, so `hashes` holds at most five
    MD5, five SHA1 and five SHA256 values. Matches are lexical only: an
    IPv4-shaped token with octets above 255 is still returned.
    """
    value = str(text or '')
    indicators: dict[str, list[str]] = {
        'hashes': [],
        'ips': [],
        'domains': [],
        'patterns': [],
    }
    for pattern in (_MD5_RE, _SHA1_RE, _SHA256_RE):
        indicators['hashes'].extend(pattern.findall(value)[:MAX_MATCHES_PER_PATTERN])
    indicators['ips'].extend(_IPV4_RE.findall(value)[:MAX_MATCHES_PER_PATTERN])
    domains = [match.group(0) for match in _DOMAIN_RE.finditer(value)]
    indicators['domains'].extend(
        [domain for domain in domains if _is_reportable_domain(domain)][:MAX_MATCHES_PER_PATTERN]
    )
    return indicators


def detect_attack_type_core(text: str) -> str | None:
    lowered = str(text or '').lower()

    # 'database' or 'injection' alone never selects sql_injection.
    if 'sql' in lowered or 'injection' in lowered or 'database' in lowered:
        if 'sql' in lowered:
            return 'sql_injection'
    if 'xss' in lowered or 'cross-site' in lowered or 'scripting' in lowered:
        return 'xss'
    if 'traversal' in lowered or 'directory' in lowered or '../' in lowered:
        return 'path_traversal'
    if 'command' in lowered and ('injection' in lowered or 'execution' in lowered):
        return 'command_injection'
    if 'rce' in lowered or 'remote code' in lowered:
        return 'rce'
    return None
