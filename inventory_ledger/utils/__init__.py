# Only date helpers are re-exported; validation depends on the entities module,
# which itself imports from here.
from .date_utils import now, parse_timestamp, serialize_timestamp, convert_to_date

__all__ = [
    'now',
    'parse_timestamp',
    'serialize_timestamp',
    'convert_to_date'
]
