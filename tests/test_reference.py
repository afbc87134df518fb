import re

from gobus_booking_platform.utils.reference import ReferenceGenerator, generate_booking_reference


REFERENCE_PATTERN = re.compile(r"^BK-[0-9A-Z]{8}-[0-9A-Z]{5}$")


def test_reference_format():
    assert REFERENCE_PATTERN.match(generate_booking_reference())


def test_references_are_unique():
    generator = ReferenceGenerator()
    references = {generator.generate() for _ in range(10_000)}

    assert len(references) == 10_000
    assert all(REFERENCE_PATTERN.match(reference) for reference in references)
