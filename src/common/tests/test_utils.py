import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db.models import Q

from common.models import Tag
from common.utils import get_or_create_with_race_protection, is_unique_violation

pytestmark = pytest.mark.django_db


class TestIsUniqueViolation:
    def test_integrity_error(self) -> None:
        assert is_unique_violation(IntegrityError("duplicate key")) is True

    def test_model_unique_error(self) -> None:
        Tag.objects.create(name="python")

        with pytest.raises(ValidationError) as exc_info:
            Tag.objects.create(name="python")

        assert is_unique_violation(exc_info.value) is True

    def test_other_validation_error(self) -> None:
        assert is_unique_violation(ValidationError({"name": ValidationError("bad", code="invalid")})) is False

    def test_non_field_validation_error(self) -> None:
        assert is_unique_violation(ValidationError("bad")) is False


class TestGetOrCreateWithRaceProtection:
    def test_creates(self) -> None:
        tag, created = get_or_create_with_race_protection(Tag, Q(name__iexact="Python"), {"name": "Python"})

        assert created is True
        assert tag.name == "Python"

    def test_returns_existing_case_insensitively(self) -> None:
        existing = Tag.objects.create(name="Python")

        tag, created = get_or_create_with_race_protection(Tag, Q(name__iexact="python"), {"name": "python"})

        assert created is False
        assert tag == existing
