"""This module contains the controllers for the authentication app."""

import typing as t

import structlog
from ninja_extra import api_controller, route
from ninja_jwt.controller import TokenObtainPairController, TokenVerificationController
from ninja_jwt.schema import TokenObtainPairInputSchema, TokenObtainPairOutputSchema

from accounts.models import ConveneUser
from common.throttling import AuthThrottle

logger = structlog.get_logger(__name__)


@api_controller("/auth", tags=["Auth"], throttle=AuthThrottle())
class AuthController(TokenVerificationController, TokenObtainPairController):
    """Token pair, refresh and verify endpoints."""

    @route.post("/token/pair", response=TokenObtainPairOutputSchema, url_name="token_obtain_pair")
    def obtain_token(self, user_token: TokenObtainPairInputSchema) -> TokenObtainPairOutputSchema:
        """Authenticate with username and password to obtain JWT access/refresh tokens.

        Send the access token as `Authorization: Bearer <token>` to authenticated endpoints and
        exchange the refresh token via POST /auth/refresh when it expires.
        """
        user = t.cast(ConveneUser, user_token._user)
        logger.info("token_pair_obtained", user_id=str(user.pk))
        return t.cast(TokenObtainPairOutputSchema, user_token.to_response_schema())  # type: ignore[no-untyped-call]
