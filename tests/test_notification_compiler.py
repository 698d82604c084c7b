import asyncio
from datetime import timedelta

import pytest

from barangay_health.modules.data_gateway import (
    APPOINTMENTS, EDUCATIONAL_MATERIALS, MOTHER_NOTIFICATIONS, InMemoryGateway,
)
from barangay_health.modules.notification_compiler import (
    SOURCE_APPOINTMENT,
    SOURCE_HEALTH,
    SOURCE_MATERIAL,
    SOURCE_SYSTEM,
    compile_feed,
    compile_feed_for_user,
    dismiss,
    read_ids,
    unread_only,
)
from barangay_health.modules.time_utils import parse_timestamp

from conftest import NOW, TODAY


def _feed(gateway, mother_id='m1', **kwargs):
    return asyncio.run(compile_feed(gateway, mother_id, today=TODAY, now=NOW, **kwargs))


def _add_appointment(gateway, days_ahead, **extra):
    row = {'mother_id': 'm1', 'date': (TODAY + timedelta(days=days_ahead)).isoformat(), 'status': 'Scheduled'}
    row.update(extra)
    return asyncio.run(gateway.insert(APPOINTMENTS, row))


def _add_material(gateway, title, days_ago, published=True, category="Nutrition"):
    return asyncio.run(gateway.insert(EDUCATIONAL_MATERIALS, {
        'title': title,
        'category': category,
        'is_published': published,
        'created_at': (NOW - timedelta(days=days_ago)).isoformat(),
    }))


def _of_type(items, source_type):
    return [item for item in items if item['source_type'] == source_type]


def test_appointment_today_and_new_material():
    gateway = InMemoryGateway({'mothers': [{'id': 'm1', 'name': 'Ana'}]})
    _add_appointment(gateway, 0, time="14:00", location="Barangay Hall")
    _add_material(gateway, "Iron-Rich Foods", 1)

    items = _feed(gateway)
    assert len(items) >= 2

    appointment = _of_type(items, SOURCE_APPOINTMENT)[0]
    assert "today" in appointment['message']
    assert "14:00" in appointment['message']
    assert "Barangay Hall" in appointment['message']

    material = _of_type(items, SOURCE_MATERIAL)[0]
    assert "Iron-Rich Foods" in material['message']

    stamps = [parse_timestamp(item['timestamp']) for item in items]
    assert stamps == sorted(stamps, reverse=True)


def test_appointment_without_time_or_location(gateway):
    _add_appointment(gateway, 0)
    message = _of_type(_feed(gateway), SOURCE_APPOINTMENT)[0]['message']
    assert message == "You have an appointment today at TBA in Health Center."


def test_future_appointment_inside_window(gateway):
    appointment = _add_appointment(gateway, 2, location="RHU")
    items = _of_type(_feed(gateway), SOURCE_APPOINTMENT)
    assert len(items) == 1
    assert items[0]['id'] == f"{appointment['id']}-reminder-2"
    assert "in 2 days" in items[0]['message']
    assert "RHU" in items[0]['message']


def test_tomorrow_uses_singular_day(gateway):
    _add_appointment(gateway, 1)
    assert "in 1 day " in _of_type(_feed(gateway), SOURCE_APPOINTMENT)[0]['message']


@pytest.mark.parametrize("days_ahead", [-1, 4, 10])
def test_appointments_outside_window_are_skipped(gateway, days_ahead):
    _add_appointment(gateway, days_ahead)
    assert _of_type(_feed(gateway), SOURCE_APPOINTMENT) == []


def test_window_is_configurable(gateway):
    _add_appointment(gateway, 5)
    assert len(_of_type(_feed(gateway, window_days=7), SOURCE_APPOINTMENT)) == 1


def test_closed_appointments_are_skipped(gateway):
    _add_appointment(gateway, 0, status="Completed")
    _add_appointment(gateway, 1, status="Cancelled")
    assert _of_type(_feed(gateway), SOURCE_APPOINTMENT) == []


def test_other_mothers_appointments_are_not_shown(gateway):
    asyncio.run(gateway.insert(APPOINTMENTS, {'mother_id': 'm2', 'date': TODAY.isoformat()}))
    assert _of_type(_feed(gateway), SOURCE_APPOINTMENT) == []


def test_only_newest_published_materials(gateway):
    for days_ago, title in enumerate(["A", "B", "C", "D"]):
        _add_material(gateway, title, days_ago)
    _add_material(gateway, "Draft", 0, published=False)

    materials = _of_type(_feed(gateway), SOURCE_MATERIAL)
    messages = " ".join(m['message'] for m in materials)
    assert len(materials) == 3
    assert "Draft" not in messages
    assert "“D”" not in messages


def test_latest_health_record_notes_are_verbatim(gateway):
    health = _of_type(_feed(gateway), SOURCE_HEALTH)
    assert len(health) == 1
    assert health[0]['id'] == 'r2'
    assert health[0]['message'] == "Health check recorded on 2025-03-10. Refer to RHU for BP check"


def test_no_health_item_without_records(gateway):
    assert _of_type(_feed(gateway, mother_id='m3'), SOURCE_HEALTH) == []


def test_system_tips_are_always_present(gateway):
    tips = _of_type(_feed(gateway, mother_id='m3'), SOURCE_SYSTEM)
    assert [t['id'] for t in tips] == ['sys1', 'sys2']


def test_missing_or_unknown_mother_gives_empty_feed(gateway):
    assert _feed(gateway, mother_id=None) == []
    assert _feed(gateway, mother_id='nobody') == []


def test_feed_for_user(gateway):
    items = asyncio.run(compile_feed_for_user(gateway, 'u1', today=TODAY, now=NOW))
    assert _of_type(items, SOURCE_HEALTH)[0]['id'] == 'r2'
    assert asyncio.run(compile_feed_for_user(gateway, None)) == []
    assert asyncio.run(compile_feed_for_user(gateway, 'u-unknown')) == []


def test_dismissed_items_can_be_hidden(gateway):
    asyncio.run(dismiss(gateway, 'm1', 'sys1', SOURCE_SYSTEM))
    seen = asyncio.run(read_ids(gateway, 'm1'))
    assert seen == {'sys1'}

    items = unread_only(_feed(gateway), seen)
    assert 'sys1' not in [item['id'] for item in items]
    assert 'sys2' in [item['id'] for item in items]
    assert len(asyncio.run(gateway.query(MOTHER_NOTIFICATIONS))) == 1


def test_dismiss_rejects_unknown_type(gateway):
    with pytest.raises(ValueError):
        asyncio.run(dismiss(gateway, 'm1', 'sys1', 'barangay'))
