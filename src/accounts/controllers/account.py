import typing as t

from ninja_extra import ControllerBase, api_controller, route, status
from ninja_jwt.schema import TokenObtainPairOutputSchema

from accounts import schema
from accounts.models import ConveneUser
from accounts.service import account as account_service
from common.authentication import ConveneJWTAuth
from common.throttling import AuthThrottle


@api_controller("/account", tags=["Account"], throttle=AuthThrottle())
class AccountController(ControllerBase):
    def user(self) -> ConveneUser:
        """Get the user for this request."""
        return t.cast(ConveneUser, self.context.request.user)  # type: ignore[union-attr]

    @route.post(
        "/register",
        url_name="register",
        response={status.HTTP_201_CREATED: TokenObtainPairOutputSchema},
    )
    def register(self, payload: schema.RegisterUserSchema) -> tuple[int, TokenObtainPairOutputSchema]:
        """Create an account and return a token pair for it."""
        user = account_service.register_user(payload)
        return status.HTTP_201_CREATED, account_service.get_token_pair_for_user(user)

    @route.get("/me", response=schema.ConveneUserSchema, url_name="me", auth=ConveneJWTAuth())
    def me(self) -> ConveneUser:
        """Return the authenticated user's profile."""
        return self.user()

    @route.put("/me", response=schema.ConveneUserSchema, url_name="update_me", auth=ConveneJWTAuth())
    def update_me(self, payload: schema.ProfileUpdateSchema) -> ConveneUser:
        """Update the authenticated user's names."""
        return account_service.update_profile(self.user(), payload)
