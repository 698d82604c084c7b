"""
Notification Compiler
Builds a mother's notification feed fresh on every view.

Sources: upcoming appointments, the newest published learning materials,
her latest health record and a couple of evergreen tips. Nothing here is
stored; the only write is `dismiss`, which remembers what she has read.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from .data_gateway import (
    APPOINTMENTS, EDUCATIONAL_MATERIALS, HEALTH_RECORDS, MOTHER_NOTIFICATIONS, MOTHERS,
    DataGateway, RecordNotFound,
)
from .risk_aggregator import latest_record
from .time_utils import parse_date, parse_timestamp

logger = logging.getLogger(__name__)


SOURCE_APPOINTMENT = "appointment"
SOURCE_MATERIAL = "material"
SOURCE_HEALTH = "health"
SOURCE_SYSTEM = "system"

SOURCE_TYPES = (SOURCE_APPOINTMENT, SOURCE_MATERIAL, SOURCE_HEALTH, SOURCE_SYSTEM)

DEFAULT_LOCATION = "Health Center"

# Appointments in these states no longer need a reminder
_CLOSED_APPOINTMENT_STATUSES = {'Completed', 'Missed', 'Cancelled'}

SYSTEM_TIPS = (
    {
        'id': 'sys1',
        'title': "Stay Hydrated",
        'message': "Drink plenty of water throughout the day.",
    },
    {
        'id': 'sys2',
        'title': "Relaxation Reminder",
        'message': "Take a few minutes to rest. A calm mother helps a calm baby.",
    },
)


def _item(item_id: str, title: str, message: str, source_type: str, timestamp: datetime) -> Dict[str, Any]:
    return {
        'id': item_id,
        'title': title,
        'message': message,
        'source_type': source_type,
        'timestamp': timestamp.isoformat(timespec='seconds'),
    }


def appointment_message(appointment: Dict[str, Any], days_left: int) -> str:
    location = appointment.get('location') or DEFAULT_LOCATION
    if days_left == 0:
        return f"You have an appointment today at {appointment.get('time') or 'TBA'} in {location}."
    unit = "day" if days_left == 1 else "days"
    return f"Your appointment is in {days_left} {unit} ({appointment.get('date')}) at {location}."


def material_message(material: Dict[str, Any]) -> str:
    category = material.get('category')
    if category:
        return f"“{material.get('title')}” has been added to {category}."
    return f"“{material.get('title')}” has been added."


def health_message(record: Dict[str, Any]) -> str:
    notes = (record.get('notes') or '').strip()
    message = f"Health check recorded on {record.get('encounter_date')}."
    return f"{message} {notes}" if notes else message


def _appointment_items(appointments: Iterable[Dict[str, Any]], today: date,
                       window_days: int, now: datetime) -> List[Dict[str, Any]]:
    items = []
    for appointment in appointments:
        if appointment.get('status') in _CLOSED_APPOINTMENT_STATUSES:
            continue
        when = parse_date(appointment.get('date'))
        if when is None:
            continue
        days_left = (when - today).days
        if not 0 <= days_left <= window_days:
            continue
        items.append(_item(
            f"{appointment.get('id')}-reminder-{days_left}",
            "Appointment Reminder",
            appointment_message(appointment, days_left),
            SOURCE_APPOINTMENT,
            now,
        ))
    return items


def _material_items(materials: Iterable[Dict[str, Any]], now: datetime) -> List[Dict[str, Any]]:
    return [
        _item(
            str(m.get('id')),
            "New Learning Material",
            material_message(m),
            SOURCE_MATERIAL,
            parse_timestamp(m.get('created_at')) or now,
        )
        for m in materials
    ]


async def compile_feed(
    gateway: DataGateway,
    mother_id: Optional[str],
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    window_days: int = 3,
    material_limit: int = 3,
) -> List[Dict[str, Any]]:
    """
    Compile the feed for one mother, newest first.

    An unknown or missing mother gives an empty feed rather than an error.
    Gateway failures on the source queries are passed to the caller.
    """
    if not mother_id:
        return []
    try:
        await gateway.get(MOTHERS, mother_id)
    except RecordNotFound:
        logger.info(f"No mother '{mother_id}', returning empty feed")
        return []

    now = now or datetime.now()
    today = today or now.date()

    appointments = await gateway.query(APPOINTMENTS, {'mother_id': mother_id}, order_by='date')
    materials = await gateway.query(
        EDUCATIONAL_MATERIALS, {'is_published': True},
        order_by='created_at', descending=True, limit=material_limit,
    )
    record = latest_record(await gateway.query(HEALTH_RECORDS, {'mother_id': mother_id}))

    items = _appointment_items(appointments, today, window_days, now)
    items.extend(_material_items(materials, now))
    if record is not None:
        items.append(_item(
            str(record.get('id')),
            "Health Record Update",
            health_message(record),
            SOURCE_HEALTH,
            parse_timestamp(record.get('encounter_date')) or now,
        ))
    items.extend(_item(tip['id'], tip['title'], tip['message'], SOURCE_SYSTEM, now) for tip in SYSTEM_TIPS)

    # sorted() is stable, so equal timestamps keep source order
    return sorted(items, key=lambda i: parse_timestamp(i['timestamp']), reverse=True)


async def resolve_mother_id(gateway: DataGateway, user_id: Optional[str]) -> Optional[str]:
    if not user_id:
        return None
    mothers = await gateway.query(MOTHERS, {'user_id': user_id}, limit=1)
    return mothers[0]['id'] if mothers else None


async def compile_feed_for_user(gateway: DataGateway, user_id: Optional[str], **kwargs) -> List[Dict[str, Any]]:
    mother_id = await resolve_mother_id(gateway, user_id)
    if mother_id is None:
        logger.info("No mother linked to the current session, returning empty feed")
        return []
    return await compile_feed(gateway, mother_id, **kwargs)


async def read_ids(gateway: DataGateway, mother_id: str) -> set:
    rows = await gateway.query(MOTHER_NOTIFICATIONS, {'mother_id': mother_id})
    return {row.get('notif_id') for row in rows}


def unread_only(items: List[Dict[str, Any]], seen: Iterable[str]) -> List[Dict[str, Any]]:
    seen = set(seen)
    return [item for item in items if item['id'] not in seen]


async def dismiss(gateway: DataGateway, mother_id: str, item_id: str, source_type: str) -> Dict[str, Any]:
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"Unknown notification type '{source_type}'")
    return await gateway.insert(MOTHER_NOTIFICATIONS, {
        'mother_id': mother_id,
        'notif_id': item_id,
        'type': source_type,
        'read_at': datetime.now().isoformat(timespec='seconds'),
    })
