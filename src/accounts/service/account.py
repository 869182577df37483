"""Account service: the only place user rows are created.

The email stored here is the single source of truth for every message the platform sends.
"""

import structlog
from django.db import transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from ninja_jwt.schema import TokenObtainPairOutputSchema
from ninja_jwt.tokens import RefreshToken

from accounts import schema
from accounts.models import ConveneUser
from common.exceptions import InvalidInput

logger = structlog.get_logger(__name__)


@transaction.atomic
def register_user(payload: schema.RegisterUserSchema) -> ConveneUser:
    """Register a new user.

    Raises:
        InvalidInput: If a user with this email already exists.
    """
    if ConveneUser.objects.filter(username__iexact=payload.email).exists():
        logger.warning("user_registration_duplicate", email=payload.email)
        raise InvalidInput(_("A user with this email already exists."))
    user = ConveneUser.objects.create_user(
        username=payload.email,
        email=payload.email,
        password=payload.password1,
        first_name=payload.first_name,
        last_name=payload.last_name,
        preferred_name=payload.preferred_name,
    )
    logger.info("user_registration_completed", user_id=str(user.id))
    return user


def update_profile(user: ConveneUser, payload: schema.ProfileUpdateSchema) -> ConveneUser:
    """Update the profile fields that were sent."""
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, value)
    if changes:
        user.save(update_fields=list(changes))
    return user


def get_token_pair_for_user(user: ConveneUser) -> TokenObtainPairOutputSchema:
    """Get a token pair for the user."""
    user.last_login = timezone.now()
    user.save(update_fields=["last_login"])

    logger.info("token_pair_generated", user_id=str(user.id))
    token = RefreshToken.for_user(user)
    token.payload.update({"sub": str(user.id), "role": user.role})
    return TokenObtainPairOutputSchema(
        username=user.username,
        access=str(token.access_token),  # type: ignore[attr-defined]
        refresh=str(token),
    )
