"""Project-wide fixtures."""

import secrets
import string
import typing as t
from datetime import datetime, time, timedelta
from decimal import Decimal

import faker
import pytest
from django.core.cache import cache
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken
from pytest import MonkeyPatch

from accounts.models import ConveneUser
from events.models import Event


@pytest.fixture(autouse=True)
def increase_rate_limit(monkeypatch: MonkeyPatch) -> None:
    """Increase the rate limits so tests never trip a throttle."""
    for throttle in (
        "AnonDefaultThrottle",
        "UserDefaultThrottle",
        "AuthThrottle",
        "WriteThrottle",
        "RegistrationThrottle",
        "ScanThrottle",
    ):
        monkeypatch.setattr(f"common.throttling.{throttle}.rate", "10000/min")


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously.

    This ensures that Celery tasks run immediately in the same process,
    allowing tests to verify their side effects without async complications.
    """
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture(autouse=True)
def clear_cache() -> t.Iterator[None]:
    """Start every test with an empty cache (scan debounce and throttle state live there)."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def stripe_test_keys(settings: t.Any) -> None:
    """Never talk to a live Stripe account from tests."""
    settings.STRIPE_SECRET_KEY = "sk_test_convene"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_convene"


class ConveneUserFactory:
    """Factory for creating ConveneUser instances for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> ConveneUser:
        username = kwargs.pop(
            "username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(8)) + "@user.test"
        )
        email = kwargs.pop("email", username + ("@test.com" if "@" not in username else ""))
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        preferred_name = kwargs.pop("preferred_name", f"{first_name} {last_name}")
        return ConveneUser.objects.create_user(
            username=username,
            email=email,
            password=password,
            preferred_name=preferred_name,
            first_name=first_name,
            last_name=last_name,
            **kwargs,
        )

    def __call__(self, **kwargs: t.Any) -> ConveneUser:
        return self.create_user(**kwargs)


@pytest.fixture
def convene_user_factory() -> ConveneUserFactory:
    return ConveneUserFactory()


@pytest.fixture
def organizer(convene_user_factory: ConveneUserFactory) -> ConveneUser:
    """A user who organizes events."""
    return convene_user_factory(username="organizer@example.com")


@pytest.fixture
def attendee(convene_user_factory: ConveneUserFactory) -> ConveneUser:
    """A user who registers for events."""
    return convene_user_factory(username="attendee@example.com")


@pytest.fixture
def other_attendee(convene_user_factory: ConveneUserFactory) -> ConveneUser:
    """A second attendee, for races and duplicate checks."""
    return convene_user_factory(username="other@example.com")


@pytest.fixture
def platform_admin(convene_user_factory: ConveneUserFactory) -> ConveneUser:
    """A user holding the persisted admin role."""
    return convene_user_factory(username="admin@example.com", role=ConveneUser.Role.ADMIN)


@pytest.fixture
def next_week() -> datetime:
    today = timezone.now()
    same_time_next_week = today + timedelta(days=7)
    noon = time(hour=12, minute=0)
    return timezone.make_aware(
        datetime.combine(same_time_next_week.date(), noon),
        timezone.get_current_timezone(),
    )


@pytest.fixture
def free_event(organizer: ConveneUser, next_week: datetime) -> Event:
    """A free in-person meetup with plenty of room."""
    return Event.objects.create(
        organizer=organizer,
        title="Python Meetup",
        description="Talks and pizza.",
        category=Event.Category.MEETUP,
        start=next_week,
        location="Community Hall",
        capacity=50,
    )


@pytest.fixture
def paid_event(organizer: ConveneUser, next_week: datetime) -> Event:
    """A paid hackathon."""
    return Event.objects.create(
        organizer=organizer,
        title="Winter Hackathon",
        category=Event.Category.HACKATHON,
        start=next_week,
        end=next_week + timedelta(days=1),
        location="Innovation Lab",
        capacity=100,
        is_free=False,
        price=Decimal("25.00"),
        currency="USD",
    )


def auth_client(user: ConveneUser) -> Client:
    """A test client sending a valid access token for ``user``."""
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")  # type: ignore[attr-defined]


@pytest.fixture
def organizer_client(organizer: ConveneUser) -> Client:
    return auth_client(organizer)


@pytest.fixture
def attendee_client(attendee: ConveneUser) -> Client:
    return auth_client(attendee)


@pytest.fixture
def admin_client_jwt(platform_admin: ConveneUser) -> Client:
    return auth_client(platform_admin)


@pytest.fixture
def jwt_client_factory() -> t.Callable[[ConveneUser], Client]:
    """Build authenticated clients for arbitrary users."""
    return auth_client
