"""
Input normalization for reservation requests.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from numbers import Integral, Real
from typing import Any, List, Optional

from .exceptions import ValidationError

# Upper bound of the seat_number column
MAX_SEAT_NUMBER = 2**31 - 1


def _as_seat_number(value: Any) -> Optional[int]:
    """Coerce one raw seat identifier to an int, or None when it is not integral or out of range."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Integral):
        number = int(value)
    elif isinstance(value, Real):
        if not float(value).is_integer() or abs(value) > MAX_SEAT_NUMBER:
            return None
        number = int(value)
    elif isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return None
        # Check the exponent before int() so "1e999999999" is never expanded
        if not parsed.is_finite() or parsed.adjusted() > 9 or parsed != parsed.to_integral_value():
            return None
        number = int(parsed)
    else:
        return None
    return number if abs(number) <= MAX_SEAT_NUMBER else None


def normalize_seat_numbers(raw: Any) -> List[int]:
    """
    Clean raw seat identifiers into a deduplicated, ascending list of positive ints.

    Duplicates, non-integral values and non-positive numbers are dropped.

    Raises:
        ValidationError: When nothing valid remains
    """
    if raw is None:
        values = []
    elif isinstance(raw, (list, tuple, set, frozenset)):
        values = list(raw)
    else:
        values = [raw]

    seats = set()
    for value in values:
        number = _as_seat_number(value)
        if number is not None and number > 0:
            seats.add(number)

    if not seats:
        raise ValidationError(
            "Valid seat_numbers array required",
            field_errors={"seat_numbers": ["At least one positive integer seat number is required"]}
        )

    return sorted(seats)


def normalize_travel_date(value: Any) -> date:
    """
    Reduce a travel date to calendar-day granularity.

    Accepts date, datetime or an ISO formatted string.

    Raises:
        ValidationError: When the value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass

    raise ValidationError(
        "Invalid travel_date",
        field_errors={"travel_date": [f"Not a calendar date: {value!r}"]}
    )
