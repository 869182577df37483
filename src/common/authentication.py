import typing as t

import structlog
from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from django.http import HttpRequest
from ninja_jwt.authentication import JWTAuth

logger = structlog.get_logger(__name__)


class ConveneJWTAuth(JWTAuth):
    """JWT authentication that binds the authenticated user to the log context.

    Every log line emitted while the request is handled carries ``user_id``.

    Usage:
        @route.get("/endpoint", auth=ConveneJWTAuth())
        def my_endpoint(request):
            ...
    """

    def authenticate(self, request: HttpRequest, token: str) -> t.Any:
        """Authenticate the request and bind the user id to structlog's context.

        Raises:
            AuthenticationFailed: If authentication fails
            InvalidToken: If the token is invalid
        """
        user = super().authenticate(request, token)
        if user is not None:
            structlog.contextvars.bind_contextvars(user_id=str(user.pk))
        return user


class OptionalAuth(ConveneJWTAuth):
    """Optional JWT authentication.

    - If JWT token present: authenticates the user
    - If no JWT token: sets request.user to AnonymousUser and continues

    Used by the public catalogue, which renders the same events for everyone but can show the
    caller's own registration state when a token is sent.
    """

    def __call__(self, request: HttpRequest) -> t.Any | None:
        """Overrides ConveneJWTAuth __call__ to provide optional auth."""
        auth_value = request.headers.get(self.header)
        if not auth_value:
            request.user = AnonymousUser()
            return request.user
        parts = auth_value.split(" ")

        if parts[0].lower() != self.openapi_scheme:
            if settings.DEBUG:
                logger.error("unexpected_auth_scheme", scheme=parts[0])
            return None
        token = " ".join(parts[1:])
        return self.authenticate(request, token)
