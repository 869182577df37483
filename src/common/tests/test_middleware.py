from unittest.mock import MagicMock

import structlog
from django.http import HttpResponse
from django.test import RequestFactory

from common.middleware import StructlogContextMiddleware


def test_binds_request_context_and_echoes_request_id(rf: RequestFactory) -> None:
    seen: dict[str, object] = {}

    def view(request: object) -> HttpResponse:
        seen.update(structlog.contextvars.get_contextvars())
        return HttpResponse()

    request = rf.get("/api/events/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1")
    response = StructlogContextMiddleware(view)(request)

    assert seen["path"] == "/api/events/"
    assert seen["method"] == "GET"
    assert seen["ip_address"] == "203.0.113.7"
    assert response["X-Request-ID"] == seen["request_id"]
    assert structlog.contextvars.get_contextvars() == {}


def test_keeps_client_supplied_request_id(rf: RequestFactory) -> None:
    request = rf.get("/", HTTP_X_REQUEST_ID="abc-123")

    response = StructlogContextMiddleware(MagicMock(return_value=HttpResponse()))(request)

    assert response["X-Request-ID"] == "abc-123"
