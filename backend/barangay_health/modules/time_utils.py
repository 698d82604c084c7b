from datetime import date, datetime
from typing import Any, Optional


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Read a stored date or timestamp as a naive local datetime.

    Accepts date/datetime objects and ISO strings ('2025-03-01',
    '2025-03-01T09:30:00', '2025-03-01T09:30:00Z'). Aware values are
    converted to local time before the zone is dropped, so they compare
    with naive `datetime.now()` values. Anything else gives None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_date(value: Any) -> Optional[date]:
    parsed = parse_timestamp(value)
    return parsed.date() if parsed else None
