from decimal import Decimal
from io import BytesIO

import pytest
from PIL import Image

from accounts.models import ConveneUser
from events.models import Credential, Event, Payment, Registration
from events.service import registration_service


@pytest.fixture
def unlimited_event(free_event: Event) -> Event:
    """The free meetup without a capacity limit."""
    free_event.capacity = None
    free_event.save()
    return free_event


@pytest.fixture
def tiny_event(free_event: Event) -> Event:
    """The free meetup with room for exactly one attendee."""
    free_event.capacity = 1
    free_event.save()
    return free_event


@pytest.fixture
def confirmed_registration(free_event: Event, attendee: ConveneUser) -> Registration:
    """The attendee's confirmed spot at the free meetup, credential included."""
    result = registration_service.register(free_event.pk, attendee)
    return Registration.objects.select_related("credential").get(pk=result.registration_id)


@pytest.fixture
def credential(confirmed_registration: Registration) -> Credential:
    return confirmed_registration.credential


@pytest.fixture
def pending_registration(paid_event: Event, attendee: ConveneUser) -> Registration:
    """A registration for the hackathon waiting on its checkout."""
    return Registration.objects.create(event=paid_event, user=attendee)


@pytest.fixture
def pending_payment(pending_registration: Registration) -> Payment:
    """The open checkout of ``pending_registration``."""
    return Payment.objects.create(
        event=pending_registration.event,
        registration=pending_registration,
        user=pending_registration.user,
        stripe_session_id="cs_test_pending",
        amount=Decimal("25.00"),
        currency="USD",
    )


@pytest.fixture
def blank_png() -> bytes:
    """A PNG with no QR code in it."""
    buffered = BytesIO()
    Image.new("RGB", (64, 64), "white").save(buffered, "PNG")
    return buffered.getvalue()
