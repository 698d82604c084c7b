"""
Appointment housekeeping run alongside each risk poll.
"""

import logging
from datetime import date
from typing import Dict, Optional

from .data_gateway import APPOINTMENTS, HEALTH_RECORDS, DataGateway
from .time_utils import parse_date

logger = logging.getLogger(__name__)


STATUS_SCHEDULED = "Scheduled"
STATUS_COMPLETED = "Completed"
STATUS_MISSED = "Missed"


async def sync_appointment_statuses(gateway: DataGateway, today: Optional[date] = None) -> Dict[str, int]:
    """
    Settle appointments dated today or earlier.

    A health record for the same mother on the appointment date completes
    it. Without one, earlier appointments are missed and today's stay
    scheduled. Only rows whose status changes are written.
    """
    today = today or date.today()
    visits = {
        (r.get('mother_id'), parse_date(r.get('encounter_date')))
        for r in await gateway.query(HEALTH_RECORDS)
    }

    changed = {STATUS_COMPLETED: 0, STATUS_MISSED: 0}
    for appointment in await gateway.query(APPOINTMENTS):
        when = parse_date(appointment.get('date'))
        if when is None or when > today:
            continue

        if (appointment.get('mother_id'), when) in visits:
            desired = STATUS_COMPLETED
        elif when < today:
            desired = STATUS_MISSED
        else:
            desired = STATUS_SCHEDULED

        if appointment.get('status') != desired:
            await gateway.update(APPOINTMENTS, appointment['id'], {'status': desired})
            changed[desired] = changed.get(desired, 0) + 1

    if any(changed.values()):
        logger.info(f"Appointment statuses updated: {changed}")
    return changed
