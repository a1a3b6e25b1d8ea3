from services.rule_generation_service import (
    generate_detection_rule_core,
    rule_name_core,
    rule_tags_core,
    sanitize_identifier_core,
)


def _alert(**overrides):
    alert = {
        'id': 'row-1',
        'external_id': 'CVE-2026-0001',
        'title': 'CVE-2026-0001',
        'description': 'Generic advisory text',
        'severity': 'medium',
        'published_date': '2026-01-01T00:00:00.000',
        'updated_date': '2026-01-02T00:00:00.000',
        'url': 'https://nvd.nist.gov/vuln/detail/CVE-2026-0001',
    }
    alert.update(overrides)
    return alert


def test_rule_name_sanitizes_title_and_external_id():
    assert sanitize_identifier_core('a-b c.d') == 'a_b_c_d'
    assert rule_name_core('CVE-2026-0001', 'CVE-2026-0001') == 'alert_CVE_2026_0001_CVE_2026_0001'


def test_rule_tags_follow_severity_and_attack_type():
    assert rule_tags_core('critical', None) == ['high_priority', 'critical']
    assert rule_tags_core('high', 'xss') == ['high_priority', 'high', 'xss']
    assert rule_tags_core('low', 'rce') == ['low', 'rce']


def test_generate_rule_is_deterministic_for_same_alert():
    alert = _alert(description='Remote code flaw contacting 10.0.0.5')

    first = generate_detection_rule_core(alert)
    second = generate_detection_rule_core(dict(alert))

    assert first == second
    assert 'generated = "2026-01-02T00:00:00.000"' in first['content']


def test_generate_rule_falls_back_to_generic_string():
    rule = generate_detection_rule_core(_alert())

    assert '$generic = "CVE-2026-0001" nocase' in rule['content']
    assert rule['content'].rstrip().endswith('$generic\n}')
    assert rule['tags'] == ['medium']
    assert 'attack_type = "unknown"' in rule['content']


def test_generate_rule_orders_indicator_and_signature_clauses():
    description = (
        'SQL flaw; payload hash d41d8cd98f00b204e9800998ecf8427e '
        'sent from 203.0.113.7 via drop.evilhost.net'
    )

    rule = generate_detection_rule_core(_alert(description=description, severity='high'))
    content = rule['content']

    assert '$hash0 = "d41d8cd98f00b204e9800998ecf8427e"' in content
    assert '$ip0 = "203.0.113.7"' in content
    assert '= "drop.evilhost.net"' in content
    assert '$sqli1 = "UNION SELECT" nocase' in content
    assert 'any of ($hash*) or any of ($ip*) or any of ($domain*) or any of ($sqli*)' in content
    assert '$generic' not in content
    assert rule['attack_type'] == 'sql_injection'
    assert rule['tags'] == ['high_priority', 'high', 'sql_injection']


def test_generate_rule_uses_title_when_description_missing():
    rule = generate_detection_rule_core(_alert(description='', title='XSS in portal'))

    assert rule['description'] == 'XSS in portal'
    assert 'any of ($xss*)' in rule['content']


def test_generate_rule_truncates_meta_description():
    rule = generate_detection_rule_core(_alert(description='x' * 500))

    assert rule['description'] == 'x' * 200
    assert f'description = "{"x" * 200}"' in rule['content']
