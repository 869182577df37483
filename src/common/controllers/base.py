import typing as t

from django.contrib.auth.models import AnonymousUser
from ninja_extra import ControllerBase

from accounts.models import ConveneUser


class UserAwareController(ControllerBase):
    def maybe_user(self) -> ConveneUser | AnonymousUser:
        """Get the user for this request."""
        return t.cast(ConveneUser | AnonymousUser, self.context.request.user)  # type: ignore[union-attr]

    def user(self) -> ConveneUser:
        """Get the user for this request."""
        return t.cast(ConveneUser, self.context.request.user)  # type: ignore[union-attr]
