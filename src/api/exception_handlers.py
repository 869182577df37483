"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import HttpRequest
from ninja.responses import Response

from common.exceptions import DomainError

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    logger.exception("INTERNAL_SERVER_ERROR", exc_info=True, stack_info=True, **request_metadata(request))
    data = {"detail": "Internal Server Error."}
    is_staff = getattr(request, "user", None) and request.user.is_staff
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error raised by a model's full_clean.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.warning("VALIDATION_ERROR", path=request.path)
    if hasattr(exc, "error_dict"):
        error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        error_dict = {"__all__": list(t.cast(ValidationError, exc).messages)}
    return Response(status=400, data={"errors": error_dict})


def handle_domain_error(request: HttpRequest, exc: DomainError | t.Type[DomainError]) -> Response:
    """Render an expected business failure as ``{"code": ..., "detail": ...}``."""
    error = t.cast(DomainError, exc)
    logger.info("domain_error", code=str(error.code), status_code=error.status_code, path=request.path)
    return Response(status=error.status_code, data=error.as_dict())


def handle_infrastructure_error(request: HttpRequest, exc: DatabaseError | t.Type[DatabaseError]) -> Response:
    """The database is unreachable or misbehaving. Distinct from business failures so clients can retry."""
    logger.exception("INFRASTRUCTURE_FAILURE", exc_info=True, **request_metadata(request))
    return Response(
        status=503,
        data={"code": "infrastructure_failure", "detail": "The service is temporarily unavailable. Please retry."},
    )


def request_metadata(request: HttpRequest) -> dict[str, t.Any]:
    """Request details worth logging next to a server error, with secrets masked."""
    metadata: dict[str, t.Any] = {
        "method": request.method,
        "path": request.path,
        "headers": obfuscate(dict(request.headers)),
        "GET": obfuscate(request.GET.dict()),
        # note: we can do request.user because we set the user in the auth flow
        "user": str(request.user) if getattr(request, "user", None) else None,
    }
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            metadata["json_payload"] = obfuscate(orjson.loads(request.body))
        except (orjson.JSONDecodeError, AttributeError, TypeError):  # pragma: no cover
            metadata["json_payload"] = None
    return metadata


SENSITIVE_KEYS = {"password", "password1", "password2", "token", "refresh", "access", "authorization", "cookie"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    if not isinstance(data, dict):
        return {}
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
