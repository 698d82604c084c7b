"""
Stored notifications written by health workers or by the reminder job.

Unlike the compiled mother feed these rows persist and carry a read flag.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from .appointments import STATUS_SCHEDULED
from .data_gateway import APPOINTMENTS, MOTHERS, NOTIFICATIONS, DataGateway
from .risk_aggregator import mother_name
from .time_utils import parse_date

logger = logging.getLogger(__name__)


TYPE_REMINDER = "reminder"
TYPE_ALERT = "alert"
TYPE_INFO = "info"

NOTIFICATION_TYPES = (TYPE_REMINDER, TYPE_ALERT, TYPE_INFO)

UPCOMING_CHECKUP_TITLE = "Upcoming Prenatal Checkup"


def _now() -> str:
    return datetime.now().isoformat(timespec='seconds')


async def list_notifications(gateway: DataGateway, kind: Optional[str] = None) -> List[Dict[str, Any]]:
    filters = {'type': kind} if kind and kind != 'all' else None
    return await gateway.query(NOTIFICATIONS, filters, order_by='created_at', descending=True)


async def broadcast(gateway: DataGateway, title: str, message: str, kind: str,
                    mother_ids: List[str]) -> List[Dict[str, Any]]:
    """Store one unread notification per target mother."""
    if not title.strip() or not message.strip():
        raise ValueError("Please fill in all fields.")
    if kind not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type '{kind}'")
    if not mother_ids:
        raise ValueError("Select at least one mother or choose All.")

    created_at = _now()
    sent = []
    for mother_id in mother_ids:
        sent.append(await gateway.insert(NOTIFICATIONS, {
            'title': title.strip(),
            'message': message.strip(),
            'type': kind,
            'is_read': False,
            'mother_id': mother_id,
            'created_at': created_at,
        }))
    logger.info(f"Notification '{title}' sent to {len(sent)} mother(s)")
    return sent


async def all_mother_ids(gateway: DataGateway) -> List[str]:
    return [m['id'] for m in await gateway.query(MOTHERS, order_by='last_name')]


async def mark_read(gateway: DataGateway, notification_id: str) -> Dict[str, Any]:
    return await gateway.update(NOTIFICATIONS, notification_id, {'is_read': True})


async def mark_all_read(gateway: DataGateway) -> int:
    unread = await gateway.query(NOTIFICATIONS, {'is_read': False})
    for row in unread:
        await gateway.update(NOTIFICATIONS, row['id'], {'is_read': True})
    return len(unread)


async def sync_upcoming_reminders(gateway: DataGateway, today: Optional[date] = None,
                                  window_days: int = 3) -> int:
    """
    Store a checkup reminder for each mother with a scheduled appointment
    in the next `window_days` days, at most one per mother.
    """
    today = today or date.today()
    horizon = today + timedelta(days=window_days)

    mothers = {m['id']: m for m in await gateway.query(MOTHERS)}
    created = 0
    for appointment in await gateway.query(APPOINTMENTS, {'status': STATUS_SCHEDULED}, order_by='date'):
        when = parse_date(appointment.get('date'))
        if when is None or not today <= when <= horizon:
            continue

        mother_id = appointment.get('mother_id')
        existing = await gateway.query(NOTIFICATIONS, {'mother_id': mother_id, 'title': UPCOMING_CHECKUP_TITLE})
        if existing:
            continue

        mother = mothers.get(mother_id)
        name = mother_name(mother) if mother else "Mother"
        where = f" at {appointment['location']}" if appointment.get('location') else ""
        await gateway.insert(NOTIFICATIONS, {
            'title': UPCOMING_CHECKUP_TITLE,
            'message': f"Reminder: {name} has a prenatal check-up on {when.isoformat()}{where}.",
            'type': TYPE_REMINDER,
            'is_read': False,
            'mother_id': mother_id,
            'created_at': _now(),
        })
        created += 1

    if created:
        logger.info(f"Created {created} upcoming checkup reminder(s)")
    return created
