"""
Risk Aggregator
Builds the per-mother risk roster for a cohort and keeps the persisted
risk reports in step with the latest health records.

Each pass classifies every mother with at least one record, upserts her
report (keyed by mother_id) and compares the at-risk count with the
previous pass in the same scope. The previous count lives on the
aggregator instance only, so a fresh process starts from zero.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .data_gateway import DataGateway, HEALTH_RECORDS, MOTHERS, RISK_REPORTS, RecordNotFound
from .risk_engine import RISK_STABLE, classify_risk, is_at_risk, reading_summary
from .time_utils import parse_timestamp

logger = logging.getLogger(__name__)


STATUS_PENDING = "Pending"
STATUS_REVIEWED = "Reviewed"
STATUS_STABLE = "Stable"

STATUSES = (STATUS_PENDING, STATUS_REVIEWED, STATUS_STABLE)


def mother_name(mother: Dict[str, Any]) -> str:
    if mother.get('name'):
        return mother['name']
    full = f"{mother.get('first_name') or ''} {mother.get('last_name') or ''}".strip()
    return full or "Unknown"


def in_zone(mother: Dict[str, Any], zone: Optional[str]) -> bool:
    """Exact zone match first, then a substring of the address."""
    if not zone or zone.strip().lower() == 'all':
        return True
    wanted = zone.strip().lower()
    if (mother.get('zone') or '').strip().lower() == wanted:
        return True
    return wanted in (mother.get('address') or '').lower()


def _latest_key(record: Dict[str, Any]):
    # Ties on encounter time go to the later created_at, then the larger id
    encounter = parse_timestamp(record.get('encounter_date')) or datetime.min
    created = parse_timestamp(record.get('created_at')) or datetime.min
    return (encounter, created, str(record.get('id') or ''))


def latest_record(records: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not records:
        return None
    return max(records, key=_latest_key)


def summary(roster: List[Dict[str, Any]]) -> Dict[str, int]:
    at_risk = sum(1 for entry in roster if is_at_risk(entry['risk_label']))
    return {'at_risk': at_risk, 'stable': len(roster) - at_risk, 'total': len(roster)}


def search(roster: List[Dict[str, Any]], text: Optional[str]) -> List[Dict[str, Any]]:
    if not text or not text.strip():
        return list(roster)
    needle = text.strip().lower()
    return [entry for entry in roster if needle in entry['mother_name'].lower()]


def filter_label(roster: List[Dict[str, Any]], label: Optional[str]) -> List[Dict[str, Any]]:
    if not label or label == 'All':
        return list(roster)
    return [entry for entry in roster if entry['risk_label'] == label]


def _roster_order(entry: Dict[str, Any]):
    return (not is_at_risk(entry['risk_label']), entry['mother_name'].lower())


class RiskAggregator:
    """
    Long-lived owner of the "new at-risk" baseline.

    One instance per process. The poller and on-demand requests share it,
    so both see the same baseline.
    """

    def __init__(self, gateway: DataGateway, clock: Callable[[], datetime] = datetime.now):
        self.gateway = gateway
        self._clock = clock
        self.previous_at_risk: Dict[Optional[str], int] = {}
        self.last_notice: Optional[str] = None

    def _build_entry(self, mother: Dict[str, Any], record: Dict[str, Any], computed_at: str) -> Dict[str, Any]:
        label = classify_risk(record)
        return {
            'mother_id': mother['id'],
            'mother_name': mother_name(mother),
            'risk_label': label,
            'status': STATUS_STABLE if label == RISK_STABLE else STATUS_PENDING,
            'last_reading_summary': reading_summary(record),
            'computed_at': computed_at,
            'health_record_id': record.get('id'),
            'zone': mother.get('zone'),
            'contact_number': mother.get('contact_number'),
            'report_details': f"Risk detected due to {label}" if label != RISK_STABLE else "No risk detected",
        }

    async def _persist(self, entry: Dict[str, Any]) -> None:
        await self.gateway.upsert(RISK_REPORTS, dict(entry), conflict_key='mother_id')

    async def run(self, zone: Optional[str] = None) -> Dict[str, Any]:
        """
        Classify the cohort, persist every assessment and return the roster.

        Returns:
            {
                'roster': list of entries, at-risk first then by name,
                'notice': "N new at-risk mother(s)" or None,
                'at_risk_count': int,
            }
        """
        scope = zone.strip() if zone and zone.strip().lower() != 'all' else None
        logger.info(f"Risk aggregation started (zone={scope or 'all'})")

        mothers = [m for m in await self.gateway.query(MOTHERS) if in_zone(m, scope)]
        records = await self.gateway.query(HEALTH_RECORDS)

        by_mother: Dict[str, List[Dict[str, Any]]] = {}
        for record in records:
            by_mother.setdefault(record.get('mother_id'), []).append(record)

        computed_at = self._clock().isoformat(timespec='seconds')
        roster = []
        for mother in mothers:
            record = latest_record(by_mother.get(mother.get('id'), []))
            if record is None:
                continue
            entry = self._build_entry(mother, record, computed_at)
            await self._persist(entry)
            roster.append(entry)

        roster.sort(key=_roster_order)
        at_risk_count = sum(1 for entry in roster if is_at_risk(entry['risk_label']))

        previous = self.previous_at_risk.get(scope, 0)
        notice = None
        if at_risk_count > previous:
            notice = f"{at_risk_count - previous} new at-risk mother(s)"
            self.last_notice = notice
            logger.info(notice)
        self.previous_at_risk[scope] = at_risk_count

        logger.info(f"Risk aggregation done: {len(roster)} classified, {at_risk_count} at risk")
        return {'roster': roster, 'notice': notice, 'at_risk_count': at_risk_count}

    async def refresh_mother(self, mother_id: str) -> Optional[Dict[str, Any]]:
        """
        Recompute one mother's assessment after her records changed.

        Drops her stored report when no records remain. The at-risk
        baseline is left alone; only full passes move it.
        """
        mother = await self.gateway.get(MOTHERS, mother_id)
        records = await self.gateway.query(HEALTH_RECORDS, {'mother_id': mother_id})
        record = latest_record(records)

        if record is None:
            for stale in await self.gateway.query(RISK_REPORTS, {'mother_id': mother_id}):
                await self.gateway.delete(RISK_REPORTS, stale['id'])
            logger.info(f"No records left for mother {mother_id}, assessment removed")
            return None

        entry = self._build_entry(mother, record, self._clock().isoformat(timespec='seconds'))
        await self._persist(entry)
        return entry

    async def mark_status(self, mother_id: str, status: str) -> Dict[str, Any]:
        """Manual acknowledgement; holds only until the next pass."""
        if status not in STATUSES:
            raise ValueError(f"Unknown status '{status}', expected one of {', '.join(STATUSES)}")
        reports = await self.gateway.query(RISK_REPORTS, {'mother_id': mother_id})
        if not reports:
            raise RecordNotFound(f"No risk assessment for mother '{mother_id}'")
        updated = await self.gateway.update(RISK_REPORTS, reports[0]['id'], {'status': status})
        logger.info(f"Risk status for mother {mother_id} set to {status}")
        return updated
