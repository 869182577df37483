"""Capacity policy.

``can_register`` is advisory when evaluated against a loaded row. The binding check is the conditional
increment in ``registration_service.finalize_registration``, which applies the same rule inside the
UPDATE statement.
"""


def can_register(current_attendees: int, max_attendees: int | None) -> bool:
    """Whether one more attendee fits.

    Args:
        current_attendees: Confirmed attendees so far.
        max_attendees: The capacity, or None for unlimited.
    """
    return max_attendees is None or current_attendees < max_attendees
