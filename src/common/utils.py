import typing as t

from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction

T = t.TypeVar("T", bound=models.Model)


def is_unique_violation(exc: Exception) -> bool:
    """Tell whether a model save failed because a unique constraint was hit.

    ``TimeStampedModel.save`` runs ``full_clean`` first, so duplicates usually surface as a
    Django ``ValidationError`` carrying a ``unique``/``unique_together`` code before they ever
    reach the database; racing inserts still reach the database as an ``IntegrityError``.
    """
    if isinstance(exc, IntegrityError):
        return True
    error_dict = getattr(exc, "error_dict", None)
    if not error_dict:
        return False
    codes = {error.code for errors in error_dict.values() for error in errors}
    return bool(codes & {"unique", "unique_together"})


def get_or_create_with_race_protection(
    model: type[T],
    lookup_filter: models.Q,
    defaults: dict[str, t.Any],
) -> tuple[T, bool]:
    """Get the row matching ``lookup_filter`` or create it from ``defaults``.

    A concurrent request may create the same row between the lookup and the insert. The
    resulting unique violation is swallowed and the winner's row is returned instead.

    Returns:
        Tuple of (instance, created).
    """
    manager: models.Manager[T] = getattr(model, "objects")
    instance = manager.filter(lookup_filter).first()
    if instance:
        return instance, False

    try:
        with transaction.atomic():
            return manager.create(**defaults), True
    except (IntegrityError, ValidationError) as e:
        if not is_unique_violation(e):
            raise
        instance = manager.filter(lookup_filter).first()
        if not instance:
            raise
        return instance, False
