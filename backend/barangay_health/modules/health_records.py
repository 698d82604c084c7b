"""
Health record workflow: derived vitals plus the save-then-reassess sequence.

Writing a record and refreshing the mother's risk report are two separate
store operations with no transaction around them. If the second one fails
the report stays stale until the next aggregation pass.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from .data_gateway import HEALTH_RECORDS, MOTHERS, DataGateway
from .risk_aggregator import RiskAggregator
from .time_utils import parse_date

logger = logging.getLogger(__name__)


FULL_TERM_WEEKS = 40


def compute_bmi(weight_kg: Any, height_cm: Any) -> Optional[float]:
    try:
        weight = float(weight_kg)
        height_m = float(height_cm) / 100
    except (TypeError, ValueError):
        return None
    if weight <= 0 or height_m <= 0:
        return None
    return round(weight / (height_m * height_m), 2)


def weeks_of_gestation(lmp_date: Any, today: Optional[date] = None) -> Optional[int]:
    lmp = parse_date(lmp_date)
    if lmp is None:
        return None
    today = today or date.today()
    return max(0, (today - lmp).days // 7)


def trimester(weeks: Optional[int]) -> str:
    if weeks is None:
        return "Unknown"
    if weeks <= 13:
        return "1st Trimester"
    if weeks <= 27:
        return "2nd Trimester"
    return "3rd Trimester"


def pregnancy_progress(weeks: Optional[int]) -> int:
    """Percent of a full-term pregnancy, clamped to 0..100."""
    if weeks is None:
        return 0
    return min(100, max(0, round(weeks / FULL_TERM_WEEKS * 100)))


async def save_health_record(
    gateway: DataGateway,
    aggregator: RiskAggregator,
    record: Dict[str, Any],
    record_id: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Persist a health record, then recompute the mother's risk assessment.

    An edit replaces the stored record: fields missing from `record` are
    cleared, except the row id and created_at.

    Args:
        record: field values; mother_id and encounter_date are required
        record_id: id of the record to edit, or None to create one

    Returns:
        {'record': saved row, 'assessment': roster entry or None}
    """
    if not record.get('mother_id') or not record.get('encounter_date'):
        raise ValueError("Please select mother and encounter date.")
    encounter = parse_date(record['encounter_date'])
    if encounter is None:
        raise ValueError(f"Invalid encounter date '{record['encounter_date']}', expected YYYY-MM-DD.")

    mother = await gateway.get(MOTHERS, record['mother_id'])
    payload = dict(record)
    payload['encounter_date'] = encounter.isoformat()
    payload['bmi'] = compute_bmi(payload.get('weight'), payload.get('height'))
    if payload.get('weeks_of_gestation') is None:
        payload['weeks_of_gestation'] = weeks_of_gestation(mother.get('lmp_date'), today)

    previous_mother_id = None
    if record_id:
        previous = await gateway.get(HEALTH_RECORDS, record_id)
        previous_mother_id = previous.get('mother_id')
        for key in previous:
            if key not in ('id', 'created_at'):
                payload.setdefault(key, None)
        saved = await gateway.update(HEALTH_RECORDS, record_id, payload)
        logger.info(f"Health record {record_id} updated")
    else:
        payload.setdefault('created_at', datetime.now().isoformat(timespec='seconds'))
        saved = await gateway.insert(HEALTH_RECORDS, payload)
        logger.info(f"Health record {saved['id']} saved for mother {saved['mother_id']}")

    assessment = await aggregator.refresh_mother(saved['mother_id'])
    if previous_mother_id and previous_mother_id != saved['mother_id']:
        await aggregator.refresh_mother(previous_mother_id)

    return {'record': saved, 'assessment': assessment}


async def delete_health_record(gateway: DataGateway, aggregator: RiskAggregator, record_id: str) -> Optional[Dict[str, Any]]:
    record = await gateway.get(HEALTH_RECORDS, record_id)
    await gateway.delete(HEALTH_RECORDS, record_id)
    logger.info(f"Health record {record_id} deleted")
    return await aggregator.refresh_mother(record['mother_id'])
