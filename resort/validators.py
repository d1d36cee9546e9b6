import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from resort.errors import InvalidInput

CENT = Decimal('0.01')
MAX_AMOUNT = Decimal('100000000')


def parse_positive_int(value, message):
    if isinstance(value, bool):
        raise InvalidInput(message)
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            raise InvalidInput(message)
        value = int(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise InvalidInput(message)
    return value


def parse_positive_decimal(value, message):
    if isinstance(value, bool) or value is None:
        raise InvalidInput(message)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInput(message)
    if not amount.is_finite() or amount >= MAX_AMOUNT:
        raise InvalidInput(message)
    # Stored as Numeric(10, 2).
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise InvalidInput(message)
    return amount


def parse_bool(value, message):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise InvalidInput(message)


def parse_date(value, field):
    """Parse an ISO date, dropping the time of day of a full timestamp."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput('{} must be a date in YYYY-MM-DD format.'.format(field))
    try:
        return datetime.datetime.fromisoformat(value.strip().replace('Z', '')).date()
    except ValueError:
        raise InvalidInput('{} must be a date in YYYY-MM-DD format.'.format(field))
