"""Tests for the API exception handlers."""

import uuid
from unittest.mock import patch

import orjson
import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError, OperationalError
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test import RequestFactory
from django.test.client import Client
from django.utils import timezone

from api.exception_handlers import (
    handle_django_validation_error,
    handle_domain_error,
    obfuscate,
    request_metadata,
)
from events.exceptions import AlreadyCheckedIn, EventFull

pytestmark = pytest.mark.django_db


class TestHandleDomainError:
    def test_renders_code_and_detail(self, rf: RequestFactory) -> None:
        response = handle_domain_error(rf.get("/api/events/"), EventFull())

        assert response.status_code == 409
        assert orjson.loads(response.content) == {"code": "event_full", "detail": "This event has reached capacity."}

    def test_extra_fields_are_included(self, rf: RequestFactory) -> None:
        checked_in_at = timezone.now()

        response = handle_domain_error(rf.post("/api/events/x/check-in"), AlreadyCheckedIn(checked_in_at))

        data = orjson.loads(response.content)
        assert data["code"] == "already_checked_in"
        assert data["checked_in_at"] == checked_in_at.isoformat()


class TestHandleDjangoValidationError:
    def test_field_errors(self, rf: RequestFactory) -> None:
        exc = ValidationError({"end": ["End date must be after start date."]})

        response = handle_django_validation_error(rf.post("/"), exc)

        assert response.status_code == 400
        assert orjson.loads(response.content) == {"errors": {"end": ["End date must be after start date."]}}

    def test_non_field_errors(self, rf: RequestFactory) -> None:
        response = handle_django_validation_error(rf.post("/"), ValidationError("Nope."))

        assert orjson.loads(response.content) == {"errors": {"__all__": ["Nope."]}}


class TestInfrastructureFailures:
    def test_database_outage_is_503(self, client: Client) -> None:
        with patch("events.service.event_service.get_event", side_effect=OperationalError("connection refused")):
            response = client.get(reverse("api:get_event", kwargs={"event_id": uuid.uuid4()}))

        assert response.status_code == 503
        assert response.json()["code"] == "infrastructure_failure"

    def test_integrity_errors_are_not_infrastructure(self, client: Client) -> None:
        with patch("events.service.event_service.get_event", side_effect=IntegrityError("constraint")):
            response = client.get(reverse("api:get_event", kwargs={"event_id": uuid.uuid4()}))

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal Server Error."


class TestRequestMetadata:
    def test_masks_secrets(self, rf: RequestFactory) -> None:
        request = rf.post(
            "/api/auth/token/pair",
            data=orjson.dumps({"username": "a@example.com", "password": "hunter22"}),
            content_type="application/json",
            HTTP_AUTHORIZATION="Bearer abc",
        )

        metadata = request_metadata(request)

        assert metadata["json_payload"]["password"] == "********"
        assert metadata["json_payload"]["username"] == "a@example.com"
        assert metadata["headers"]["Authorization"] == "********"

    def test_obfuscate_ignores_non_dicts(self) -> None:
        assert obfuscate(["password"]) == {}  # type: ignore[arg-type]
