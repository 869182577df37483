import typing as t

import pytest

from accounts import schema
from accounts.models import ConveneUser


@pytest.fixture
def valid_register_payload() -> schema.RegisterUserSchema:
    """Provides a valid payload for the user registration endpoint."""
    return schema.RegisterUserSchema(
        email="newuser@example.com",
        password1="a-Strong-password-123!",
        password2="a-Strong-password-123!",
        first_name="New",
        last_name="User",
    )


@pytest.fixture
def user(django_user_model: t.Type[ConveneUser]) -> ConveneUser:
    """A standard, non-privileged user."""
    return django_user_model.objects.create_user(
        username="testuser@example.com",
        email="testuser@example.com",
        password="strong-password-123!",
        first_name="Test",
        last_name="User",
    )
