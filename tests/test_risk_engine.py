import pytest

from barangay_health.modules.risk_engine import (
    RISK_CHRONIC,
    RISK_FEVER,
    RISK_HIGH_BP,
    RISK_LOW_WEIGHT,
    RISK_STABLE,
    classify_risk,
    is_at_risk,
    parse_blood_pressure,
    reading_summary,
)


@pytest.mark.parametrize("record, expected", [
    ({'bp': '150/95', 'temp': 37, 'weight': 60, 'dm': False, 'hpn': False}, RISK_HIGH_BP),
    ({'bp': '110/70', 'temp': 39, 'weight': 60}, RISK_FEVER),
    ({'bp': '110/70', 'temp': 37, 'weight': 40}, RISK_LOW_WEIGHT),
    ({'bp': '110/70', 'temp': 37, 'weight': 60, 'hpn': True}, RISK_CHRONIC),
    ({'bp': '110/70', 'temp': 37, 'weight': 60}, RISK_STABLE),
    ({'bp': 'not-a-number', 'temp': 37, 'weight': 60}, RISK_STABLE),
])
def test_booklet_examples(record, expected):
    assert classify_risk(record) == expected


def test_high_bp_wins_over_every_other_rule():
    record = {'blood_pressure': '140/80', 'temperature': 40, 'weight': 30,
              'diabetes': True, 'hypertension': True}
    assert classify_risk(record) == RISK_HIGH_BP


def test_diastolic_alone_triggers_high_bp():
    assert classify_risk({'blood_pressure': '120/90'}) == RISK_HIGH_BP


def test_fever_beats_low_weight_and_chronic():
    record = {'blood_pressure': '120/80', 'temperature': 38.5, 'weight': 40, 'diabetes': True}
    assert classify_risk(record) == RISK_FEVER


def test_thresholds_are_strict_for_fever_and_weight():
    assert classify_risk({'temperature': 38, 'weight': 45}) == RISK_STABLE


def test_malformed_bp_only_skips_its_own_rule():
    assert classify_risk({'blood_pressure': '150-95', 'temperature': 39}) == RISK_FEVER
    assert classify_risk({'blood_pressure': '', 'weight': 42}) == RISK_LOW_WEIGHT


def test_non_numeric_vitals_are_ignored():
    record = {'blood_pressure': '110/70', 'temperature': 'hot', 'weight': 'n/a', 'diabetes': 'yes'}
    assert classify_risk(record) == RISK_CHRONIC


def test_numeric_strings_are_read():
    assert classify_risk({'temperature': '38.6'}) == RISK_FEVER


def test_string_flags():
    assert classify_risk({'hypertension': 'false'}) == RISK_STABLE
    assert classify_risk({'hypertension': 'TRUE'}) == RISK_CHRONIC


def test_no_record_is_not_classified():
    assert classify_risk(None) is None


def test_empty_record_is_stable():
    assert classify_risk({}) == RISK_STABLE


@pytest.mark.parametrize("text, expected", [
    ('120/80', (120, 80)),
    (' 150 / 95 ', (150, 95)),
    ('120/', None),
    ('120/80/60', (120, 80)),
    ('1400/95', (1400, 95)),
    ('118.5/76', (118.5, 76)),
    ('nan/80', None),
    ('abc', None),
    (None, None),
    (12080, None),
])
def test_parse_blood_pressure(text, expected):
    assert parse_blood_pressure(text) == expected


def test_is_at_risk():
    assert is_at_risk(RISK_FEVER)
    assert not is_at_risk(RISK_STABLE)
    assert not is_at_risk(None)


def test_reading_summary_mentions_vitals_and_history():
    text = reading_summary({'blood_pressure': '150/95', 'temperature': 37.5, 'weight': 60,
                            'hypertension': True, 'encounter_date': '2025-03-10'})
    assert "BP 150/95" in text
    assert "Temp 37.5 C" in text
    assert "Weight 60 kg" in text
    assert "hypertension" in text
    assert "2025-03-10" in text


def test_reading_summary_with_missing_vitals():
    assert reading_summary({}) == "BP N/A, Temp N/A, Weight N/A"


@pytest.mark.parametrize("bp", ['150/95/80', '1400/95', '120/95/'])
def test_bp_reading_is_not_range_or_shape_checked(bp):
    assert classify_risk({'blood_pressure': bp, 'temperature': 37, 'weight': 60}) == RISK_HIGH_BP
