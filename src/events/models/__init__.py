from .event import Event, EventQuerySet
from .payment import Payment
from .registration import Attendance, Credential, Registration

__all__ = [
    "Attendance",
    "Credential",
    "Event",
    "EventQuerySet",
    "Payment",
    "Registration",
]
