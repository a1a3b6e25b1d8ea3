import logging
import uuid

from services.parsing_utils_service import is_unique_conflict_core

LOGGER = logging.getLogger(__name__)

ATTACK_TECHNIQUE_URL = 'https://attack.mitre.org/techniques/{technique_id}/'

# Ordered keyword table. Every entry with at least one substring hit
# contributes a mapping; entries may repeat a technique id.
TECHNIQUE_PATTERNS: tuple[dict[str, object], ...] = (
    {
        'keywords': ('remote code execution', 'rce', 'code execution', 'arbitrary code', 'execute arbitrary'),
        'technique_id': 'T1203',
        'technique_name': 'Exploitation for Client Execution',
        'tactic': 'Execution',
        'confidence': 0.85,
    },
    {
        'keywords': ('sql injection', 'sqli', 'sql'),
        'technique_id': 'T1190',
        'technique_name': 'Exploit Public-Facing Application',
        'tactic': 'Initial Access',
        'confidence': 0.90,
    },
    {
        'keywords': ('privilege escalation', 'elevate privileges', 'gain privileges', 'root access', 'admin access'),
        'technique_id': 'T1068',
        'technique_name': 'Exploitation for Privilege Escalation',
        'tactic': 'Privilege Escalation',
        'confidence': 0.85,
    },
    {
        'keywords': ('credential', 'password', 'authentication', 'login', 'bypass authentication'),
        'technique_id': 'T1078',
        'technique_name': 'Valid Accounts',
        'tactic': 'Defense Evasion',
        'confidence': 0.70,
    },
    {
        'keywords': ('phishing', 'spear phishing', 'social engineering'),
        'technique_id': 'T1566',
        'technique_name': 'Phishing',
        'tactic': 'Initial Access',
        'confidence': 0.90,
    },
    {
        'keywords': ('malware', 'trojan', 'backdoor', 'virus', 'ransomware', 'spyware'),
        'technique_id': 'T1204',
        'technique_name': 'User Execution',
        'tactic': 'Execution',
        'confidence': 0.75,
    },
    {
        'keywords': ('vulnerability', 'buffer overflow', 'overflow', 'memory corruption', 'out of bounds'),
        'technique_id': 'T1203',
        'technique_name': 'Exploitation for Client Execution',
        'tactic': 'Execution',
        'confidence': 0.80,
    },
    {
        'keywords': ('denial of service', 'dos', 'ddos', 'crash'),
        'technique_id': 'T1498',
        'technique_name': 'Network Denial of Service',
        'tactic': 'Impact',
        'confidence': 0.85,
    },
    {
        'keywords': ('command injection', 'command execution', 'shell'),
        'technique_id': 'T1059',
        'technique_name': 'Command and Scripting Interpreter',
        'tactic': 'Execution',
        'confidence': 0.85,
    },
    {
        'keywords': ('data exfiltration', 'data theft', 'exfiltrate', 'leak', 'disclosure', 'sensitive information'),
        'technique_id': 'T1041',
        'technique_name': 'Exfiltration Over C2 Channel',
        'tactic': 'Exfiltration',
        'confidence': 0.80,
    },
    {
        'keywords': ('cross-site scripting', 'xss'),
        'technique_id': 'T1190',
        'technique_name': 'Exploit Public-Facing Application',
        'tactic': 'Initial Access',
        'confidence': 0.85,
    },
    {
        'keywords': ('directory traversal', 'path traversal'),
        'technique_id': 'T1190',
        'technique_name': 'Exploit Public-Facing Application',
        'tactic': 'Initial Access',
        'confidence': 0.85,
    },
    {
        'keywords': ('injection', 'inject'),
        'technique_id': 'T1059',
        'technique_name': 'Command and Scripting Interpreter',
        'tactic': 'Execution',
        'confidence': 0.70,
    },
)

DEFAULT_MAPPING: dict[str, object] = {
    'technique_id': 'T1190',
    'technique_name': 'Exploit Public-Facing Application',
    'tactic': 'Initial Access',
    'description': 'Default mapping for vulnerability alerts',
    'confidence_score': 0.50,
}


def map_alert_techniques_core(alert: dict[str, object]) -> list[dict[str, object]]:
    text = str(alert.get('description') or alert.get('title') or '').lower()
    mappings: list[dict[str, object]] = []
    for pattern in TECHNIQUE_PATTERNS:
        if any(keyword in text for keyword in pattern['keywords']):
            mappings.append(
                {
                    'technique_id': pattern['technique_id'],
                    'technique_name': pattern['technique_name'],
                    'tactic': pattern['tactic'],
                    'description': 'Mapped based on alert content analysis',
                    'confidence_score': pattern['confidence'],
                }
            )
    if not mappings:
        mappings.append(dict(DEFAULT_MAPPING))
    return mappings


def ensure_technique_core(connection, mapping: dict[str, object], *, new_id=None) -> str:
    _new_id = new_id or (lambda: str(uuid.uuid4()))
    technique_id = str(mapping['technique_id'])
    row = connection.execute(
        'SELECT id FROM mitre_attack_techniques WHERE technique_id = ?',
        (technique_id,),
    ).fetchone()
    if row is not None:
        return str(row[0])
    row_id = _new_id()
    connection.execute(
        '''
        INSERT INTO mitre_attack_techniques (id, technique_id, technique_name, tactic, description, url)
        VALUES (?, ?, ?, ?, ?, ?)
        ''',
        (
            row_id,
            technique_id,
            str(mapping['technique_name']),
            str(mapping['tactic']),
            str(mapping.get('description') or ''),
            ATTACK_TECHNIQUE_URL.format(technique_id=technique_id),
        ),
    )
    return row_id


def store_alert_mappings_core(
    connection,
    *,
    alert_id: str,
    mappings: list[dict[str, object]],
    new_id=None,
) -> int:
    _new_id = new_id or (lambda: str(uuid.uuid4()))
    inserted = 0
    for mapping in mappings:
        technique_row_id = ensure_technique_core(connection, mapping, new_id=_new_id)
        try:
            connection.execute(
                '''
                INSERT INTO alert_mitre_mappings (id, alert_id, technique_id, confidence_score)
                VALUES (?, ?, ?, ?)
                ''',
                (_new_id(), alert_id, technique_row_id, float(mapping['confidence_score'])),
            )
            inserted += 1
        except Exception as exc:
            if not is_unique_conflict_core(exc):
                raise
            # Same technique reached through a second keyword entry.
            LOGGER.debug('Mapping %s already present for alert %s', mapping['technique_id'], alert_id)
    return inserted
