"""Tests for UserAwareController."""

from unittest.mock import Mock

import pytest
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory

from accounts.models import ConveneUser
from common.controllers import UserAwareController

pytestmark = pytest.mark.django_db


def _controller(user: object) -> UserAwareController:
    request = RequestFactory().get("/")
    request.user = user  # type: ignore[assignment]
    controller = UserAwareController()
    controller.context = Mock(request=request)
    return controller


def test_user_returns_request_user(attendee: ConveneUser) -> None:
    assert _controller(attendee).user() == attendee


def test_maybe_user_may_be_anonymous() -> None:
    assert isinstance(_controller(AnonymousUser()).maybe_user(), AnonymousUser)
