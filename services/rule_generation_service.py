import re

from services.indicator_service import detect_attack_type_core, extract_indicators_core

RULE_NAME_PREFIX = 'alert_'
DESCRIPTION_LIMIT = 200

# Signature strings per attack category. The variable prefix of each set is
# shared so the condition can reference the whole set as `any of ($prefix*)`.
ATTACK_SIGNATURES: dict[str, dict[str, object]] = {
    'sql_injection': {
        'description': 'Detects SQL Injection patterns',
        'strings': [
            '$sqli1 = "UNION SELECT" nocase',
            '$sqli2 = "OR 1=1" nocase',
            '$sqli3 = "information_schema" nocase',
            '$sqli4 = "xp_cmdshell" nocase',
            '$sqli5 = "--" wide ascii',
            '$sqli6 = "; DROP TABLE" nocase',
        ],
    },
    'xss': {
        'description': 'Detects Cross-Site Scripting patterns',
        'strings': [
            '$xss1 = "<script>" nocase',
            '$xss2 = "javascript:" nocase',
            '$xss3 = "onerror=" nocase',
            '$xss4 = "onload=" nocase',
            '$xss5 = "document.cookie" nocase',
        ],
    },
    'path_traversal': {
        'description': 'Detects Path Traversal patterns',
        'strings': [
            '$pt1 = "../" ascii',
            '$pt2 = "..%2f" nocase',
            '$pt3 = "/etc/passwd" nocase',
            '$pt4 = "C:\\\\Windows\\\\System32" nocase',
        ],
    },
    'command_injection': {
        'description': 'Detects Command Injection patterns',
        'strings': [
            '$cmd1 = "/bin/sh" nocase',
            '$cmd2 = "/bin/bash" nocase',
            '$cmd3 = "cmd.exe" nocase',
            '$cmd4 = "powershell" nocase',
            '$cmd5 = "&&" ascii',
            '$cmd6 = "|" ascii',
        ],
    },
    'rce': {
        'description': 'Detects Remote Code Execution patterns',
        'strings': [
            '$rce1 = "eval(" nocase',
            '$rce2 = "base64_decode" nocase',
            '$rce3 = "shell_exec" nocase',
            '$rce4 = "system(" nocase',
        ],
    },
}

_NON_IDENTIFIER_RE = re.compile(r'[^a-zA-Z0-9_]')


def sanitize_identifier_core(value: str) -> str:
    return _NON_IDENTIFIER_RE.sub('_', str(value or ''))


def rule_name_core(title: str, external_id: str) -> str:
    return f'{RULE_NAME_PREFIX}{sanitize_identifier_core(title)}_{sanitize_identifier_core(external_id)}'


def rule_tags_core(severity: str, attack_type: str | None) -> list[str]:
    tags: list[str] = []
    if severity in {'critical', 'high'}:
        tags.append('high_priority')
    tags.append(severity)
    if attack_type:
        tags.append(attack_type)
    return tags


def _signature_prefix(strings: list[str]) -> str:
    first_var = strings[0].strip().split(' ')[0]
    return re.sub(r'[0-9]+$', '*', first_var)


def _meta_string(value: str) -> str:
    return value.replace('"', '\\"').replace('\n', ' ')


def generate_detection_rule_core(alert: dict[str, object]) -> dict[str, object]:
    """Build the YARA-style rule for one alert.

    The output depends only on the alert fields. The `generated` meta value is
    taken from the alert's own updated/published timestamp, so regenerating an
    unchanged alert yields byte-identical content.
    """
    title = str(alert.get('title') or '')
    external_id = str(alert.get('external_id') or '')
    severity = str(alert.get('severity') or 'info')
    description = str(alert.get('description') or '') or title
    generated = str(alert.get('updated_date') or alert.get('published_date') or '')

    indicators = extract_indicators_core(description)
    attack_type = detect_attack_type_core(f'{description} {title}')

    string_definitions: list[str] = []
    conditions: list[str] = []

    for key, prefix in (('hashes', 'hash'), ('ips', 'ip'), ('domains', 'domain')):
        values = indicators[key]
        if not values:
            continue
        for idx, value in enumerate(values):
            string_definitions.append(f'        ${prefix}{idx} = "{value}"')
        conditions.append(f'any of (${prefix}*)')

    if attack_type and attack_type in ATTACK_SIGNATURES:
        signature_strings = list(ATTACK_SIGNATURES[attack_type]['strings'])
        string_definitions.extend(f'        {line}' for line in signature_strings)
        conditions.append(f'any of ({_signature_prefix(signature_strings)})')

    if not string_definitions:
        string_definitions.append(f'        $generic = "{external_id}" nocase')
        conditions.append('$generic')

    name = rule_name_core(title, external_id)
    clean_description = _meta_string(description[:DESCRIPTION_LIMIT])
    content_lines = [
        f'rule {name} {{',
        '    meta:',
        f'        description = "{clean_description}"',
        f'        severity = "{severity}"',
        f'        source = "{alert.get("url") or ""}"',
        f'        alert_id = "{external_id}"',
        f'        generated = "{generated}"',
        f'        attack_type = "{attack_type or "unknown"}"',
        '    strings:',
        *string_definitions,
        '    condition:',
        f'        {" or ".join(conditions)}',
        '}',
    ]
    return {
        'name': name,
        'content': '\n'.join(content_lines),
        'description': description[:DESCRIPTION_LIMIT],
        'tags': rule_tags_core(severity, attack_type),
        'attack_type': attack_type,
    }
