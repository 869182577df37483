"""Common schemas for the API."""

import typing as t

from ninja import ModelSchema, Schema
from pydantic import StringConstraints

from .models import Tag

StrippedString = t.Annotated[str, StringConstraints(strip_whitespace=True)]
OneToSixtyFourString = t.Annotated[str, StringConstraints(min_length=1, max_length=64, strip_whitespace=True)]
OneToTwoHundredFiftyFiveString = t.Annotated[
    str, StringConstraints(min_length=1, max_length=255, strip_whitespace=True)
]


class VersionResponse(Schema):
    version: str


class ResponseOk(Schema):
    status: t.Literal["ok"] = "ok"


class TagSchema(ModelSchema):
    class Meta:
        model = Tag
        fields = ("name", "description", "color")
