"""Schema for accounts module."""

import typing as t

from django.contrib.auth.password_validation import validate_password
from ninja import ModelSchema, Schema
from pydantic import UUID4, EmailStr, Field, model_validator

from common.schema import StrippedString

from .models import ConveneUser


class ConveneUserSchema(ModelSchema):
    id: UUID4
    email: str
    display_name: str
    role: ConveneUser.Role

    class Meta:
        model = ConveneUser
        fields = ["email", "first_name", "last_name", "preferred_name", "role", "is_active"]


class MinimalUserSchema(ModelSchema):
    id: UUID4
    display_name: str

    class Meta:
        model = ConveneUser
        fields = ["username", "preferred_name"]


class PasswordMixin(Schema):
    password1: str = Field(..., description="Password", min_length=8, max_length=150)
    password2: str = Field(..., description="Password confirmation", min_length=8, max_length=150)

    @model_validator(mode="after")
    def password_match(self) -> t.Self:
        """Validate that the passwords match."""
        if self.password1 != self.password2:
            raise ValueError("Passwords do not match")
        return self


class RegisterUserSchema(PasswordMixin):
    email: EmailStr
    first_name: StrippedString = ""
    last_name: StrippedString = ""
    preferred_name: StrippedString = ""

    @model_validator(mode="after")
    def validate_password(self) -> t.Self:
        """Validate the password."""
        tmp_user = ConveneUser(
            email=self.email, username=self.email, first_name=self.first_name, last_name=self.last_name
        )
        validate_password(self.password1, user=tmp_user)
        return self


class ProfileUpdateSchema(Schema):
    first_name: StrippedString | None = None
    last_name: StrippedString | None = None
    preferred_name: StrippedString | None = None
