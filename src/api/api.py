from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import InterfaceError, OperationalError, connection
from django.db.transaction import TransactionManagementError
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI

from accounts.controllers.account import AccountController
from accounts.controllers.auth import AuthController
from common.controllers import TagController
from common.exceptions import DomainError
from common.schema import ResponseOk, VersionResponse
from common.throttling import AnonDefaultThrottle, UserDefaultThrottle
from events.controllers import AttendanceController, EventController, StripeWebhookController
from moderation.controllers import ModerationController

from .exception_handlers import (
    handle_django_validation_error,
    handle_domain_error,
    handle_general_exception,
    handle_infrastructure_error,
)

api = NinjaExtraAPI(
    title="Convene Backend API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Convene API {settings.VERSION}",
    app_name=f"convene-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
    throttle=[AnonDefaultThrottle(), UserDefaultThrottle()],
)


@api.get("/version", tags=["Version"], url_name="version", response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version."""
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], url_name="healthcheck", response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Report healthy once the database answers.

    A dead database surfaces as an OperationalError, which the infrastructure handler renders as 503.
    """
    connection.ensure_connection()
    return 200, ResponseOk()


api.register_controllers(
    # Auth/Account controllers
    AuthController,
    AccountController,
    # Event controllers
    EventController,
    AttendanceController,
    StripeWebhookController,
    # Moderation controllers
    ModerationController,
    # Common controllers
    TagController,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    DomainError: handle_domain_error,
    OperationalError: handle_infrastructure_error,
    InterfaceError: handle_infrastructure_error,
    TransactionManagementError: handle_infrastructure_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)
