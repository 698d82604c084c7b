"""
Risk Classifier
Maps a mother's latest health record to one risk label.

Rules are checked in a fixed order and the first match wins:
high blood pressure, fever, low weight, chronic condition, else stable.
A vital that cannot be read only disables its own rule.
"""

import logging
import math
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


RISK_STABLE = "Stable"
RISK_HIGH_BP = "High Blood Pressure"
RISK_FEVER = "Fever"
RISK_LOW_WEIGHT = "Low Weight"
RISK_CHRONIC = "Chronic Condition"

RISK_LABELS = (RISK_STABLE, RISK_HIGH_BP, RISK_FEVER, RISK_LOW_WEIGHT, RISK_CHRONIC)

BP_SYSTOLIC_LIMIT = 140
BP_DIASTOLIC_LIMIT = 90
FEVER_TEMP_LIMIT = 38.0
LOW_WEIGHT_LIMIT_KG = 45.0

# Older record rows use the short field names from the paper booklet
_FIELD_ALIASES = {
    'blood_pressure': ('blood_pressure', 'bp'),
    'temperature': ('temperature', 'temp'),
    'weight': ('weight',),
    'diabetes': ('diabetes', 'dm'),
    'hypertension': ('hypertension', 'hpn'),
}


def _field(record: Dict[str, Any], name: str) -> Any:
    for key in _FIELD_ALIASES[name]:
        if record.get(key) is not None:
            return record[key]
    return None


def parse_blood_pressure(text: Any) -> Optional[Tuple[float, float]]:
    """
    Read the first two '/'-separated parts of 'S/D' text as numbers.

    Extra parts are ignored and no range is enforced. Returns None when
    either of the two parts is missing or not a number.
    """
    if not isinstance(text, str):
        return None
    parts = text.split('/')
    if len(parts) < 2:
        return None
    try:
        systolic, diastolic = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if math.isnan(systolic) or math.isnan(diastolic):
        return None
    return systolic, diastolic


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', 'y', '1')
    return bool(value)


def classify_risk(record: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Classify a single health record.

    Args:
        record: latest health record row for a mother, or None

    Returns:
        One of RISK_LABELS, or None when there is no record to classify.
    """
    if record is None:
        return None

    bp = parse_blood_pressure(_field(record, 'blood_pressure'))
    if bp is None and _field(record, 'blood_pressure') is not None:
        logger.debug(f"Ignoring unreadable blood pressure {_field(record, 'blood_pressure')!r} "
                     f"on record {record.get('id')}")
    if bp is not None:
        systolic, diastolic = bp
        if systolic >= BP_SYSTOLIC_LIMIT or diastolic >= BP_DIASTOLIC_LIMIT:
            return RISK_HIGH_BP

    temperature = _to_number(_field(record, 'temperature'))
    if temperature is not None and temperature > FEVER_TEMP_LIMIT:
        return RISK_FEVER

    weight = _to_number(_field(record, 'weight'))
    if weight is not None and weight < LOW_WEIGHT_LIMIT_KG:
        return RISK_LOW_WEIGHT

    if _to_flag(_field(record, 'diabetes')) or _to_flag(_field(record, 'hypertension')):
        return RISK_CHRONIC

    return RISK_STABLE


def is_at_risk(label: Optional[str]) -> bool:
    return label is not None and label != RISK_STABLE


def reading_summary(record: Dict[str, Any]) -> str:
    """Short one-line description of the vitals a label was computed from."""
    bp = _field(record, 'blood_pressure')
    temperature = _to_number(_field(record, 'temperature'))
    weight = _to_number(_field(record, 'weight'))

    parts = [
        f"BP {bp}" if bp else "BP N/A",
        f"Temp {temperature:g} C" if temperature is not None else "Temp N/A",
        f"Weight {weight:g} kg" if weight is not None else "Weight N/A",
    ]
    conditions = []
    if _to_flag(_field(record, 'diabetes')):
        conditions.append("diabetes")
    if _to_flag(_field(record, 'hypertension')):
        conditions.append("hypertension")
    if conditions:
        parts.append(f"History: {', '.join(conditions)}")
    if record.get('encounter_date'):
        parts.append(f"on {record['encounter_date']}")
    return ", ".join(parts)
