# inventory_ledger/utils/date_utils.py
from datetime import date, datetime
from typing import Optional, Union

def now() -> datetime:
    """Current local wall-clock time, second precision.

    Timestamps are kept naive and local, matching what the snapshot files
    and the relational mirror already contain.
    """
    return datetime.now().replace(microsecond=0)

def serialize_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to an ISO-8601 string.

    Args:
        value: Datetime or None

    Returns:
        ISO string or None
    """
    if value is None:
        return None
    return value.isoformat()

def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp.

    Accepts datetimes (returned unchanged), ISO strings with or without a
    trailing 'Z', and the ``[y, m, d, H, M, S]`` arrays older snapshot
    files contain.

    Args:
        value: Raw value from a snapshot file

    Returns:
        Naive datetime or None when the value is empty or unreadable
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value

    if isinstance(value, (list, tuple)):
        try:
            return datetime(*[int(part) for part in value[:6]])
        except (TypeError, ValueError):
            return None

    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1]
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed

def convert_to_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """Convert a value to a date.

    Args:
        value: Date, datetime or ISO string

    Returns:
        Date or None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_timestamp(value)
    return parsed.date() if parsed else None
