"""
Booking reference generation.
"""

import secrets
import string
import time

REFERENCE_PREFIX = "BK-"
REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
RANDOM_PART_LENGTH = 8
TIME_PART_LENGTH = 5


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(REFERENCE_ALPHABET[remainder])
    return "".join(reversed(digits))


class ReferenceGenerator:
    """Produces short, shareable booking references like ``BK-7QX2M0ZA-K3F9Q``."""

    def generate(self) -> str:
        random_part = "".join(
            secrets.choice(REFERENCE_ALPHABET) for _ in range(RANDOM_PART_LENGTH)
        )
        millis = time.time_ns() // 1_000_000
        time_part = _to_base36(millis)[-TIME_PART_LENGTH:].rjust(TIME_PART_LENGTH, "0")
        return f"{REFERENCE_PREFIX}{random_part}-{time_part}"


def generate_booking_reference() -> str:
    """Generate a booking reference with the default generator."""
    return ReferenceGenerator().generate()
